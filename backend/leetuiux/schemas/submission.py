from __future__ import annotations
from pydantic import BaseModel, Field
from typing import Literal
from uuid import UUID
from datetime import datetime

SubmissionStatus = Literal["draft", "submitted"]


class SubmissionFile(BaseModel):
    name: str
    type: str | None = None
    size: int | None = None
    url: str | None = None       # uploaded files
    preview: str | None = None   # drafts keep the local preview handle


class SubmissionPayload(BaseModel):
    """Text fields of a multipart submission (sent as the `payload` JSON part)."""
    title: str = ""
    description: str = ""
    tools: str = ""
    figma_embed: str = ""


class DraftCreate(BaseModel):
    title: str = ""
    description: str = ""
    tools: str = ""
    figma_embed: str = ""
    preview_image: str | None = None   # local preview handle, kept as-is
    files: list[SubmissionFile] = Field(default_factory=list)


class UserSummary(BaseModel):
    id: UUID | None = None
    name: str = "User"
    avatar: str | None = None


class ChallengeSummary(BaseModel):
    id: int | None = None
    title: str | None = None
    difficulty: str | None = None


class SubmissionPublic(BaseModel):
    id: UUID
    challenge_id: int
    user_id: UUID
    title: str | None = None
    description: str = "No description provided."
    tools: str | None = None
    status: SubmissionStatus
    created_at: datetime
    date: str
    # resolved for display (signed URL, placeholder, or local handle)
    image: str
    figma_embed: str | None = None
    figma_preview_url: str = ""
    files: list[SubmissionFile] = Field(default_factory=list)
    rating: float = 0
    user: UserSummary | None = None
    challenge: ChallengeSummary | None = None


class RatingCreate(BaseModel):
    rating: int = Field(ge=1, le=5)
