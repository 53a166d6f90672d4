from __future__ import annotations
from pydantic import BaseModel, Field, ValidationError
from typing import Any, Literal, List
from datetime import datetime, timezone

Difficulty = Literal["easy", "medium", "hard"]
Frequency = Literal["low", "medium", "high"]

class SeenInInterviews(BaseModel):
    yes: int = 0
    no: int = 0

class CompanyReport(BaseModel):
    name: str
    reports: int = 0

class ChallengeInsights(BaseModel):
    interview_frequency: str = "medium"
    seen_in_interviews: SeenInInterviews = Field(default_factory=SeenInInterviews)
    last_reported: str = "N/A"
    companies: List[CompanyReport] = Field(default_factory=list)
    common_role: str = "UI/UX Designer"
    interview_stage: str = "Take-home"

class ChallengeCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: str
    long_description: str | None = None
    difficulty: Difficulty = "easy"
    frequency: Frequency = "medium"
    tags: List[str] = Field(default_factory=list)
    companies: List[str] = Field(default_factory=list)
    requirements: List[str] = Field(default_factory=list)
    deliverables: List[str] = Field(default_factory=list)
    resources: List[str] = Field(default_factory=list)
    author: str | None = None

class ChallengePublic(BaseModel):
    id: int
    title: str
    description: str
    long_description: str
    difficulty: str
    frequency: str
    created_at: datetime
    tags: List[str]
    companies: List[str]
    deliverables: List[Any]
    resources: List[Any]
    requirements: List[Any]
    insights: ChallengeInsights
    submissions: int
    rating: float
    author: str


def shape_insights(raw) -> ChallengeInsights:
    """Stored insights with null or mis-shaped fields replaced by defaults."""
    if not isinstance(raw, dict):
        return ChallengeInsights()
    data = {k: v for k, v in raw.items() if v is not None}
    companies = data.get("companies")
    if isinstance(companies, list):
        # older rows list bare company names
        data["companies"] = [{"name": c} if isinstance(c, str) else c for c in companies]
    try:
        return ChallengeInsights.model_validate(data)
    except ValidationError:
        pass
    kept = {}
    for key, value in data.items():
        try:
            ChallengeInsights.model_validate({key: value})
        except ValidationError:
            continue
        kept[key] = value
    return ChallengeInsights.model_validate(kept)


def shape_challenge(row) -> ChallengePublic:
    """
    Shape a stored challenge (ORM row or mapping) so that no documented field is
    ever missing. Falsy values take the default, matching what the list and
    detail views expect.
    """
    get = row.get if isinstance(row, dict) else (lambda k: getattr(row, k, None))
    description = get("description")
    return ChallengePublic(
        id=get("id"),
        title=get("title") or "Untitled Challenge",
        description=description or "No description available",
        long_description=get("long_description") or description or "No detailed description available",
        difficulty=get("difficulty") or "easy",
        frequency=get("frequency") or "medium",
        created_at=get("created_at") or datetime.now(timezone.utc),
        tags=get("tags") or [],
        companies=get("companies") or [],
        deliverables=get("deliverables") or [],
        resources=get("resources") or [],
        requirements=get("requirements") or [],
        insights=shape_insights(get("insights")),
        submissions=get("submissions_count") or 0,
        rating=get("rating") or 0,
        author=get("author") or "Unknown",
    )
