"""
Data access: domain intents mapped onto the relational store.

Every function returns a `Result`; the store's own exception travels in
`Result.error` unchanged. Nested `user` / `challenge` objects mirror the
embedded relations the views render.
"""
from __future__ import annotations
from uuid import UUID
from sqlalchemy import select, func, delete, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
import structlog

from leetuiux.models.challenge import Challenge
from leetuiux.models.comment import Comment, CommentLike
from leetuiux.models.submission import Submission, SubmissionRating
from leetuiux.models.user import User
from leetuiux.schemas.challenge import ChallengeCreate, shape_challenge
from leetuiux.services.result import Result

log = structlog.get_logger()

CHALLENGE_NOT_FOUND = "Challenge not found"
SUBMISSION_NOT_FOUND = "Submission not found"


def _user_embed(u: User | None) -> dict | None:
    return u.identity() if u else None


def _challenge_embed(ch: Challenge | None) -> dict | None:
    if not ch:
        return None
    return {"id": ch.id, "title": ch.title, "difficulty": ch.difficulty}


def submission_row(s: Submission, **embeds) -> dict:
    row = {
        "id": s.id,
        "challenge_id": s.challenge_id,
        "user_id": s.user_id,
        "title": s.title,
        "description": s.description,
        "tools": s.tools,
        "preview_image": s.preview_image,
        "figma_embed": s.figma_embed,
        "files": s.files,
        "status": s.status,
        "created_at": s.created_at,
    }
    row.update(embeds)
    return row


async def _rollback(session: AsyncSession) -> None:
    try:
        await session.rollback()
    except SQLAlchemyError:
        log.exception("rollback_failed")


# ---------- comments ----------

async def create_comment(session: AsyncSession, challenge_id: int, user_id: UUID, text: str) -> Result:
    try:
        c = Comment(challenge_id=challenge_id, user_id=user_id, text=text)
        session.add(c)
        await session.commit()
        await session.refresh(c)
        return Result.ok([{"id": c.id, "challenge_id": c.challenge_id, "user_id": c.user_id,
                           "text": c.text, "created_at": c.created_at}])
    except SQLAlchemyError as e:
        await _rollback(session)
        log.error("create_comment_failed", challenge_id=challenge_id, error=str(e))
        return Result.fail(e)


async def get_comments_by_challenge_id(session: AsyncSession, challenge_id: int) -> Result:
    likes = (
        select(CommentLike.comment_id, func.count().label("likes_count"))
        .group_by(CommentLike.comment_id)
        .subquery()
    )
    q = (
        select(Comment, User, func.coalesce(likes.c.likes_count, 0))
        .join(User, User.id == Comment.user_id)
        .outerjoin(likes, likes.c.comment_id == Comment.id)
        .where(Comment.challenge_id == challenge_id)
        .order_by(Comment.created_at.desc(), Comment.id.desc())
    )
    try:
        rows = (await session.execute(q)).all()
    except SQLAlchemyError as e:
        log.error("fetch_comments_failed", challenge_id=challenge_id, error=str(e))
        return Result.fail(e)
    return Result.ok([
        {
            "id": c.id,
            "challenge_id": c.challenge_id,
            "user_id": c.user_id,
            "text": c.text,
            "created_at": c.created_at,
            "likes_count": int(n or 0),
            "user": _user_embed(u),
        }
        for (c, u, n) in rows
    ])


async def like_comment(session: AsyncSession, comment_id: int, user_id: UUID) -> Result:
    """
    Toggle a like. The (comment_id, user_id) unique constraint decides: a
    successful insert is a like, a violation means the like exists and is removed.
    """
    try:
        session.add(CommentLike(comment_id=comment_id, user_id=user_id))
        await session.commit()
        return Result.ok(action="liked")
    except IntegrityError:
        await _rollback(session)
    except SQLAlchemyError as e:
        await _rollback(session)
        log.error("toggle_like_failed", comment_id=comment_id, error=str(e))
        return Result.fail(e)

    try:
        res = await session.execute(
            delete(CommentLike).where(CommentLike.comment_id == comment_id, CommentLike.user_id == user_id)
        )
        await session.commit()
    except SQLAlchemyError as e:
        await _rollback(session)
        log.error("toggle_like_failed", comment_id=comment_id, error=str(e))
        return Result.fail(e)
    if not res.rowcount:
        # the insert failed for another reason (e.g. unknown comment)
        return Result.fail("Comment not found")
    return Result.ok(action="unliked")


async def count_comment_likes(session: AsyncSession, comment_id: int) -> int:
    return int(await session.scalar(
        select(func.count()).select_from(CommentLike).where(CommentLike.comment_id == comment_id)
    ) or 0)


# ---------- submissions ----------

async def create_submission(session: AsyncSession, data: dict) -> Result:
    try:
        s = Submission(
            challenge_id=data["challenge_id"],
            user_id=data["user_id"],
            title=data.get("title"),
            description=data.get("description"),
            tools=data.get("tools"),
            preview_image=data.get("preview_image"),
            figma_embed=data.get("figma_embed"),
            files=data.get("files"),
            status=data.get("status") or "submitted",
        )
        session.add(s)
        await session.commit()
        await session.refresh(s)
        return Result.ok([submission_row(s)])
    except SQLAlchemyError as e:
        await _rollback(session)
        log.error("create_submission_failed", challenge_id=data.get("challenge_id"), error=str(e))
        return Result.fail(e)


async def _avg_ratings(session: AsyncSession, submission_ids: list) -> dict:
    if not submission_ids:
        return {}
    rows = (await session.execute(
        select(SubmissionRating.submission_id, func.avg(SubmissionRating.rating))
        .where(SubmissionRating.submission_id.in_(submission_ids))
        .group_by(SubmissionRating.submission_id)
    )).all()
    return {sid: float(avg or 0) for (sid, avg) in rows}


async def get_submissions_by_challenge_id(session: AsyncSession, challenge_id: int) -> Result:
    q = (
        select(Submission, User)
        .outerjoin(User, User.id == Submission.user_id)
        .where(Submission.challenge_id == challenge_id)
        .order_by(Submission.created_at.desc())
    )
    try:
        rows = (await session.execute(q)).all()
        ratings = await _avg_ratings(session, [s.id for (s, _) in rows])
    except SQLAlchemyError as e:
        log.error("fetch_submissions_failed", challenge_id=challenge_id, error=str(e))
        return Result.fail(e)
    return Result.ok([
        submission_row(s, user=_user_embed(u), avg_rating=ratings.get(s.id, 0.0)) for (s, u) in rows
    ])


async def get_submissions_by_user_id(session: AsyncSession, user_id: UUID) -> Result:
    q = (
        select(Submission, Challenge)
        .outerjoin(Challenge, Challenge.id == Submission.challenge_id)
        .where(Submission.user_id == user_id)
        .order_by(Submission.created_at.desc())
    )
    try:
        rows = (await session.execute(q)).all()
        ratings = await _avg_ratings(session, [s.id for (s, _) in rows])
    except SQLAlchemyError as e:
        log.error("fetch_user_submissions_failed", user_id=str(user_id), error=str(e))
        return Result.fail(e)
    return Result.ok([
        submission_row(s, challenge=_challenge_embed(ch), avg_rating=ratings.get(s.id, 0.0)) for (s, ch) in rows
    ])


async def get_submission_by_id(session: AsyncSession, submission_id: UUID) -> Result:
    q = (
        select(Submission, User, Challenge)
        .outerjoin(User, User.id == Submission.user_id)
        .outerjoin(Challenge, Challenge.id == Submission.challenge_id)
        .where(Submission.id == submission_id)
    )
    try:
        row = (await session.execute(q)).first()
        if not row:
            return Result.fail(SUBMISSION_NOT_FOUND)
        s, u, ch = row
        ratings = await _avg_ratings(session, [s.id])
    except SQLAlchemyError as e:
        log.error("fetch_submission_failed", submission_id=str(submission_id), error=str(e))
        return Result.fail(e)
    return Result.ok(submission_row(s, user=_user_embed(u), challenge=_challenge_embed(ch),
                                    avg_rating=ratings.get(s.id, 0.0)))


async def get_submission_rating(session: AsyncSession, submission_id: UUID) -> Result:
    try:
        ratings = await _avg_ratings(session, [submission_id])
    except SQLAlchemyError as e:
        log.warning("fetch_ratings_failed", submission_id=str(submission_id), error=str(e))
        return Result.fail(e)
    return Result.ok(ratings.get(submission_id, 0.0))


async def rate_submission(session: AsyncSession, submission_id: UUID, user_id: UUID, rating: int) -> Result:
    """One rating per (submission, user); a second rating replaces the first."""
    try:
        session.add(SubmissionRating(submission_id=submission_id, user_id=user_id, rating=rating))
        await session.commit()
        return Result.ok({"submission_id": submission_id, "rating": rating}, action="created")
    except IntegrityError:
        await _rollback(session)
    except SQLAlchemyError as e:
        await _rollback(session)
        return Result.fail(e)

    try:
        res = await session.execute(
            update(SubmissionRating)
            .where(SubmissionRating.submission_id == submission_id, SubmissionRating.user_id == user_id)
            .values(rating=rating)
        )
        await session.commit()
    except SQLAlchemyError as e:
        await _rollback(session)
        log.error("rate_submission_failed", submission_id=str(submission_id), error=str(e))
        return Result.fail(e)
    if not res.rowcount:
        return Result.fail(SUBMISSION_NOT_FOUND)
    return Result.ok({"submission_id": submission_id, "rating": rating}, action="updated")


# ---------- challenges ----------

async def get_all_challenges(session: AsyncSession) -> Result:
    try:
        rows = (await session.execute(
            select(Challenge).order_by(Challenge.created_at.desc(), Challenge.id.desc())
        )).scalars().all()
    except SQLAlchemyError as e:
        log.error("fetch_challenges_failed", error=str(e))
        return Result.fail(e)
    if not rows:
        log.info("no_challenges_found")
        return Result.fail("No challenges found")
    return Result.ok([shape_challenge(ch) for ch in rows])


async def get_challenge_by_id(session: AsyncSession, challenge_id: int) -> Result:
    try:
        ch = await session.get(Challenge, challenge_id)
    except SQLAlchemyError as e:
        log.error("fetch_challenge_failed", challenge_id=challenge_id, error=str(e))
        return Result.fail(e)
    if not ch:
        log.info("challenge_not_found", challenge_id=challenge_id)
        return Result.fail(CHALLENGE_NOT_FOUND)
    return Result.ok(shape_challenge(ch))


async def create_challenge(session: AsyncSession, data: ChallengeCreate, user_id: UUID | None = None) -> Result:
    try:
        ch = Challenge(user_id=user_id, **data.model_dump())
        session.add(ch)
        await session.commit()
        await session.refresh(ch)
        return Result.ok(shape_challenge(ch))
    except SQLAlchemyError as e:
        await _rollback(session)
        log.error("create_challenge_failed", error=str(e))
        return Result.fail(e)
