from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

class CommentCreate(BaseModel):
    text: str = Field(min_length=1, max_length=5000)

class CommentUser(BaseModel):
    id: UUID
    name: str
    avatar: str

class CommentPublic(BaseModel):
    id: int
    text: str
    timestamp: datetime
    likes: int = 0
    user: CommentUser

class LikeToggle(BaseModel):
    comment_id: int
    action: Literal["liked", "unliked"]
    likes: int = 0
