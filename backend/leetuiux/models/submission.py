from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, CheckConstraint, Uuid, func
from leetuiux.db import Base, JSONType


class Submission(Base):
    __tablename__ = "submissions"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    challenge_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("challenges.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )

    title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    description: Mapped[str | None] = mapped_column(Text(), nullable=True)
    tools: Mapped[str | None] = mapped_column(Text(), nullable=True)

    # durable URL for submitted rows; local preview handle for drafts
    preview_image: Mapped[str | None] = mapped_column(Text(), nullable=True)
    figma_embed: Mapped[str | None] = mapped_column(Text(), nullable=True)
    files: Mapped[list | None] = mapped_column(JSONType, nullable=True)  # [{name, type, size, url|preview}]

    status: Mapped[str] = mapped_column(String(16), nullable=False, default="submitted")  # 'draft'|'submitted'
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class SubmissionRating(Base):
    __tablename__ = "submission_ratings"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    submission_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("submissions.id", ondelete="CASCADE"), index=True, nullable=False
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        UniqueConstraint("submission_id", "user_id", name="uq_rating_once_per_user"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_rating_range"),
    )
