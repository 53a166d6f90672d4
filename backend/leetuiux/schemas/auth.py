from __future__ import annotations
from pydantic import BaseModel, EmailStr, Field
from uuid import UUID
from datetime import datetime

class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=8, max_length=128)
    full_name: str = Field(min_length=1, max_length=120)

class LoginRequest(BaseModel):
    email: EmailStr
    password: str

class UserMetadata(BaseModel):
    full_name: str | None = None
    avatar_url: str | None = None

class UserPublic(BaseModel):
    id: UUID
    email: EmailStr
    user_metadata: UserMetadata
    created_at: datetime

class TokenPair(BaseModel):
    access: str
    refresh: str
