from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, Integer, Float, DateTime, Uuid, func, ForeignKey, Text
from leetuiux.db import Base, JSONType

class Challenge(Base):
    __tablename__ = "challenges"
    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    title: Mapped[str | None] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text())
    long_description: Mapped[str | None] = mapped_column(Text())
    difficulty: Mapped[str | None] = mapped_column(String(16))  # easy|medium|hard
    frequency: Mapped[str | None] = mapped_column(String(16))   # low|medium|high
    tags: Mapped[list | None] = mapped_column(JSONType)
    companies: Mapped[list | None] = mapped_column(JSONType)
    requirements: Mapped[list | None] = mapped_column(JSONType)
    deliverables: Mapped[list | None] = mapped_column(JSONType)
    resources: Mapped[list | None] = mapped_column(JSONType)
    insights: Mapped[dict | None] = mapped_column(JSONType)
    submissions_count: Mapped[int | None] = mapped_column(Integer)
    rating: Mapped[float | None] = mapped_column(Float)
    author: Mapped[str | None] = mapped_column(String(120))
    created_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), server_default=func.now())
