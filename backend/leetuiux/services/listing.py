"""In-memory filtering and display helpers over already-fetched rows."""
from __future__ import annotations
from datetime import datetime, timezone
from typing import Iterable, Literal
from leetuiux.schemas.challenge import ChallengePublic
from leetuiux.security import default_avatar_url

TimeFilter = Literal["week", "month", "year"]

_TIME_WINDOWS = {"week": 7, "month": 30, "year": 365}


def _days_between(created_at: datetime, now: datetime) -> int:
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return int((now - created_at).total_seconds() // 86400)


def filter_challenges(
    challenges: Iterable[ChallengePublic],
    search: str = "",
    difficulty: str | None = None,
    frequency: str | None = None,
    company: str | None = None,
) -> list[ChallengePublic]:
    term = (search or "").lower()
    out = []
    for ch in challenges:
        if term and term not in ch.title.lower() and term not in ch.description.lower():
            continue
        if difficulty and ch.difficulty != difficulty.lower():
            continue
        if frequency and ch.frequency != frequency.lower():
            continue
        if company and company.lower() not in ch.companies:
            continue
        out.append(ch)
    return out


def matches_time(created_at: datetime, time_filter: str | None, now: datetime | None = None) -> bool:
    days = _TIME_WINDOWS.get(time_filter or "")
    if days is None:
        return True
    return _days_between(created_at, now or datetime.now(timezone.utc)) < days


def filter_submissions(
    items: Iterable[dict],
    search: str = "",
    challenge: str | None = None,
    time_filter: str | None = None,
    now: datetime | None = None,
) -> list[dict]:
    """Items carry `challenge` (title) and `created_at`, as built for the my-submissions list."""
    term = (search or "").lower()
    out = []
    for item in items:
        title = item.get("challenge") or ""
        if term and term not in title.lower():
            continue
        if challenge and title != challenge:
            continue
        if not matches_time(item["created_at"], time_filter, now):
            continue
        out.append(item)
    return out


def time_ago(created_at: datetime, now: datetime | None = None) -> str:
    days = _days_between(created_at, now or datetime.now(timezone.utc))
    if days <= 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    return f"{days // 30} months ago"


def display_name(user: dict | None) -> str:
    if not user:
        return "User"
    meta = user.get("user_metadata") or {}
    if meta.get("full_name"):
        return meta["full_name"]
    email = user.get("email") or ""
    return email.split("@")[0] or "User"


def avatar_for(user: dict | None) -> str:
    meta = (user or {}).get("user_metadata") or {}
    return meta.get("avatar_url") or default_avatar_url((user or {}).get("email") or "User")
