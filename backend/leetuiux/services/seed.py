"""
Demo data: the challenge catalogue, sample submissions, and ratings.

Inserts go in small batches with a pause in between so a hosted database
does not rate-limit the run.
"""
from __future__ import annotations
import asyncio
import random
from uuid import UUID
from sqlalchemy import select, func, insert
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from leetuiux.config import settings
from leetuiux.models.challenge import Challenge
from leetuiux.models.submission import Submission, SubmissionRating
from leetuiux.services.result import Result

log = structlog.get_logger()

SUBMISSION_BATCH = 3
RATING_BATCH = 5

CATALOGUE = [
    {
        "title": "E-commerce Product Page Redesign",
        "description": "Redesign a product page for an e-commerce website to improve user experience and conversion rates.",
        "difficulty": "easy", "frequency": "high",
        "companies": ["airbnb", "uber", "spotify", "amazon", "facebook", "google"],
        "tags": ["UI Design", "E-commerce", "Web"],
    },
    {
        "title": "Mobile Banking App Dashboard",
        "description": "Design a user-friendly dashboard for a mobile banking application that displays key financial information.",
        "difficulty": "medium", "frequency": "medium",
        "companies": ["chase", "paypal", "stripe", "robinhood"],
        "tags": ["UI Design", "Mobile", "Dashboard"],
    },
    {
        "title": "SaaS Analytics Dashboard",
        "description": "Create a comprehensive analytics dashboard for a SaaS platform that visualizes complex data in an intuitive way.",
        "difficulty": "hard", "frequency": "medium",
        "companies": ["salesforce", "hubspot", "slack", "notion"],
        "tags": ["UI Design", "Dashboard", "Data Visualization"],
    },
    {
        "title": "Food Delivery App Checkout Flow",
        "description": "Design an efficient and user-friendly checkout flow for a food delivery mobile application.",
        "difficulty": "medium", "frequency": "high",
        "companies": ["doordash", "uber", "grubhub", "instacart"],
        "tags": ["UX Design", "Mobile", "Checkout"],
    },
    {
        "title": "Travel Booking Website Redesign",
        "description": "Redesign a travel booking website to improve the user experience and conversion rates.",
        "difficulty": "medium", "frequency": "medium",
        "companies": ["airbnb", "booking", "expedia", "tripadvisor"],
        "tags": ["UI Design", "Web", "Travel"],
    },
    {
        "title": "Social Media Profile Page",
        "description": "Design a modern and engaging user profile page for a social media platform.",
        "difficulty": "easy", "frequency": "medium",
        "companies": ["facebook", "twitter", "instagram", "linkedin"],
        "tags": ["UI Design", "Social Media", "Web"],
    },
]

_UNSPLASH = "https://images.unsplash.com/photo-{}?auto=format&fit=crop&w=800&q=80"
_PREVIEWS = {
    1: ["1511556820780-d912e42b4980", "1523275335684-37898b6baf30"],
    2: ["1551650975-87deedd944c3", "1563013544-824ae1b704d3"],
    3: ["1555774698-0b77e0d5fac6", "1565299624946-b28f40a0ae38"],
    4: ["1551288049-bebda4e38f71", "1460925895917-afdab827c52f"],
    5: ["1552664730-d307ca884978", "1501785888041-af3ef285b470"],
    6: ["1563986768609-322da13575f3", "1611162617213-7d7a39e9b1d7"],
}
_FILES = [
    {"name": "design.fig", "type": "application/octet-stream", "size": None, "url": "https://example.com/design.fig"},
    {"name": "preview.jpg", "type": "image/jpeg", "size": None, "url": "https://example.com/preview.jpg"},
]

# (catalogue position, preview image) pairs
MOCK_SUBMISSIONS = [
    {"catalogue": pos, "preview_image": _UNSPLASH.format(photo), "files": _FILES}
    for pos, photos in _PREVIEWS.items() for photo in photos
]


def _batches(rows: list, size: int):
    for i in range(0, len(rows), size):
        yield i, rows[i:i + size]


async def seed_challenges(session: AsyncSession) -> Result:
    try:
        existing = await session.scalar(select(func.count()).select_from(Challenge))
        if existing:
            return Result.ok(0, message="Challenges already present")
        await session.execute(insert(Challenge), [dict(c) for c in CATALOGUE])
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        log.error("seed_challenges_failed", error=str(e))
        return Result.fail(e)
    log.info("seed_challenges_done", count=len(CATALOGUE))
    return Result.ok(len(CATALOGUE))


async def seed_database(session: AsyncSession, user_id: UUID | None) -> Result:
    """Insert the mock submissions for `user_id`."""
    if not user_id:
        log.error("seed_requires_user")
        return Result.fail("User ID is required")

    titles = [c["title"] for c in CATALOGUE]
    try:
        ids_by_title = dict((await session.execute(
            select(Challenge.title, Challenge.id).where(Challenge.title.in_(titles))
        )).all())
    except SQLAlchemyError as e:
        log.error("seed_lookup_challenges_failed", error=str(e))
        return Result.fail(e)

    rows = []
    for n, s in enumerate(MOCK_SUBMISSIONS):
        title = titles[s["catalogue"] - 1]
        ch_id = ids_by_title.get(title)
        if ch_id is None:
            log.warning("seed_challenge_missing", title=title)
            continue
        rows.append({
            "challenge_id": ch_id,
            "user_id": user_id,
            "title": f"{title} #{n % 2 + 1}",
            "description": "",
            "preview_image": s["preview_image"],
            "files": s["files"],
            "status": "submitted",
        })
    if not rows:
        return Result.fail("Seed the challenge catalogue first")

    log.info("seed_submissions_start", count=len(rows))
    try:
        for i, batch in _batches(rows, SUBMISSION_BATCH):
            await session.execute(insert(Submission), batch)
            await session.commit()
            if i + SUBMISSION_BATCH < len(rows):
                await asyncio.sleep(settings.seed_batch_delay_seconds)
    except SQLAlchemyError as e:
        await session.rollback()
        log.error("seed_submissions_failed", error=str(e))
        return Result.fail(e)
    log.info("seed_submissions_done")
    return Result.ok(len(rows))


async def add_ratings_to_submissions(session: AsyncSession, user_id: UUID | None) -> Result:
    """Give every submission the user has not rated yet a 3-5 star rating."""
    if not user_id:
        log.error("ratings_require_user")
        return Result.fail("User ID is required")

    try:
        submission_ids = (await session.execute(select(Submission.id))).scalars().all()
    except SQLAlchemyError as e:
        log.error("ratings_fetch_submissions_failed", error=str(e))
        return Result.fail(e)
    if not submission_ids:
        return Result.ok(0, message="No submissions to rate")

    try:
        already = set((await session.execute(
            select(SubmissionRating.submission_id).where(SubmissionRating.user_id == user_id)
        )).scalars().all())
    except SQLAlchemyError as e:
        log.error("ratings_check_existing_failed", error=str(e))
        return Result.fail(e)

    ratings = [
        {"submission_id": sid, "user_id": user_id, "rating": random.randint(3, 5)}
        for sid in submission_ids if sid not in already
    ]
    if not ratings:
        return Result.ok(0, message="All submissions already have ratings from this user")

    inserted = 0
    for i, batch in _batches(ratings, RATING_BATCH):
        try:
            await session.execute(insert(SubmissionRating), batch)
            await session.commit()
            inserted += len(batch)
        except IntegrityError:
            # rated concurrently since the pre-check; fall back to row by row
            await session.rollback()
            inserted += await _insert_ratings_individually(session, batch)
        except SQLAlchemyError as e:
            await session.rollback()
            log.error("ratings_insert_failed", batch=i // RATING_BATCH + 1, error=str(e))
            return Result.fail(e)
        if i + RATING_BATCH < len(ratings):
            await asyncio.sleep(settings.seed_batch_delay_seconds)
    log.info("ratings_added", count=inserted)
    return Result.ok(inserted)


async def _insert_ratings_individually(session: AsyncSession, batch: list[dict]) -> int:
    n = 0
    for row in batch:
        try:
            session.add(SubmissionRating(**row))
            await session.commit()
            n += 1
        except IntegrityError:
            await session.rollback()
    return n


async def seed_all(session: AsyncSession, user_id: UUID | None) -> Result:
    ch = await seed_challenges(session)
    if not ch.success:
        return ch
    subs = await seed_database(session, user_id)
    if not subs.success:
        return subs
    ratings = await add_ratings_to_submissions(session, user_id)
    data = {"challenges": ch.data, "submissions": subs.data, "ratings": ratings.data if ratings.success else 0}
    if not ratings.success:
        return Result.ok(data, error=ratings.error,
                         message="Submissions were created but adding ratings failed")
    return Result.ok(data, message=ratings.message)
