from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from leetuiux.db import get_session
from leetuiux.auth_deps import get_current_user
from leetuiux.models.user import User
from leetuiux.services.seed import seed_all

router = APIRouter(prefix="/admin", tags=["admin"])

@router.post("/seed")
async def seed(user: User = Depends(get_current_user), session: AsyncSession = Depends(get_session)):
    """Load the demo catalogue, sample submissions and ratings for the calling user."""
    res = await seed_all(session, user.id)
    if not res.success:
        raise HTTPException(status_code=500, detail=res.error_message)
    return {
        "success": True,
        "message": res.message,
        "warning": res.error_message,
        "data": res.data,
    }
