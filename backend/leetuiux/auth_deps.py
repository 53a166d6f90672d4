from __future__ import annotations
import uuid
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from leetuiux.db import get_session
from leetuiux.security import decode_token
from leetuiux.models.user import User
from leetuiux.services.auth_context import AuthContext

security = HTTPBearer(auto_error=False)

async def _user_from_credentials(credentials: HTTPAuthorizationCredentials | None, session: AsyncSession) -> User:
    if credentials is None:
        raise HTTPException(status_code=401, detail="Missing access token")
    try:
        data = decode_token(credentials.credentials)
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid token")
    if data.get("type") != "access":
        raise HTTPException(status_code=401, detail="Wrong token type")
    try:
        user = await session.get(User, uuid.UUID(str(data.get("sub"))))
    except (TypeError, ValueError):
        user = None
    if not user:
        raise HTTPException(status_code=401, detail="User not found")
    return user

async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> User:
    return await _user_from_credentials(credentials, session)

async def get_optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    session: AsyncSession = Depends(get_session),
) -> User | None:
    """Like get_current_user, but anonymous callers get None instead of a 401."""
    if credentials is None:
        return None
    return await _user_from_credentials(credentials, session)

def get_auth_context(request: Request) -> AuthContext:
    ctx = getattr(request.app.state, "auth", None)
    if ctx is None:
        raise HTTPException(status_code=503, detail="Auth context not initialised")
    return ctx
