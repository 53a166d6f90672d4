from __future__ import annotations
from fastapi import APIRouter, Body, Depends, HTTPException, Response
from leetuiux.auth_deps import get_current_user, get_auth_context
from leetuiux.models.user import User
from leetuiux.schemas.auth import RegisterRequest, LoginRequest, UserPublic, UserMetadata, TokenPair
from leetuiux.services.auth import AuthError
from leetuiux.services.auth_context import AuthContext

router = APIRouter(prefix="/auth", tags=["auth"])

AUTH_UNAVAILABLE = "Authentication is temporarily unavailable"

def to_user_public(user: User) -> UserPublic:
    return UserPublic(
        id=user.id,
        email=user.email,
        user_metadata=UserMetadata(**user.user_metadata),
        created_at=user.created_at,
    )

@router.post("/register", status_code=201, response_model=UserPublic)
async def register(payload: RegisterRequest, ctx: AuthContext = Depends(get_auth_context)):
    res = await ctx.signup(payload.email, payload.password, payload.full_name)
    if not res.success:
        if not isinstance(res.error, str):
            raise HTTPException(status_code=503, detail=AUTH_UNAVAILABLE)
        code = 409 if res.action == "email_taken" else 400
        raise HTTPException(status_code=code, detail=res.error_message)
    return to_user_public(res.data.user)

@router.post("/login", response_model=TokenPair)
async def login(payload: LoginRequest, ctx: AuthContext = Depends(get_auth_context)):
    res = await ctx.login(payload.email, payload.password)
    if not res.success:
        if not isinstance(res.error, str):
            raise HTTPException(status_code=503, detail=AUTH_UNAVAILABLE)
        raise HTTPException(status_code=401, detail=res.error_message)
    return TokenPair(access=res.data.access, refresh=res.data.refresh)

@router.post("/refresh", response_model=TokenPair)
async def refresh(refresh: str = Body(..., embed=True), ctx: AuthContext = Depends(get_auth_context)):
    try:
        session = await ctx.auth.refresh(refresh)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=e.message)
    return TokenPair(access=session.access, refresh=session.refresh)

@router.post("/logout", status_code=204)
async def logout(refresh: str | None = Body(None, embed=True), ctx: AuthContext = Depends(get_auth_context)):
    res = await ctx.logout(refresh)
    if not res.success:
        raise HTTPException(status_code=500, detail=res.error_message)
    return Response(status_code=204)

@router.get("/me", response_model=UserPublic)
async def me(user: User = Depends(get_current_user)):
    return to_user_public(user)
