from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from leetuiux.db import get_session
from leetuiux.auth_deps import get_current_user
from leetuiux.models.user import User
from leetuiux.schemas.comment import LikeToggle
from leetuiux.services import database

router = APIRouter(prefix="/comments", tags=["comments"])

@router.post("/{comment_id}/like", response_model=LikeToggle)
async def toggle_like(
    comment_id: int,
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
):
    res = await database.like_comment(session, comment_id, user.id)
    if not res.success:
        code = 404 if res.error == "Comment not found" else 500
        raise HTTPException(status_code=code, detail=res.error_message)
    likes = await database.count_comment_likes(session, comment_id)
    return LikeToggle(comment_id=comment_id, action=res.action, likes=likes)
