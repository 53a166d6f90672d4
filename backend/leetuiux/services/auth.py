from __future__ import annotations
import enum
import inspect
import uuid
from dataclasses import dataclass
from typing import Any, Callable
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import jwt
import structlog

from leetuiux.db import SessionLocal
from leetuiux.models.user import User
from leetuiux.security import (
    hash_password, verify_password, make_access_token, make_refresh_token, decode_token, default_avatar_url,
)

log = structlog.get_logger()


class AuthEvent(str, enum.Enum):
    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_UP = "SIGNED_UP"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


class AuthError(Exception):
    def __init__(self, message: str, code: str):
        super().__init__(message)
        self.message = message
        self.code = code


@dataclass
class AuthSession:
    user: User
    access: str
    refresh: str | None = None


Listener = Callable[[AuthEvent, "AuthSession | None"], Any]


class AuthService:
    """Password sessions issued as JWT pairs, with session-change notifications."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession] = SessionLocal):
        self._session_factory = session_factory
        self._listeners: list[Listener] = []
        self._revoked: set[str] = set()

    def on_session_change(self, callback: Listener) -> Callable[[], None]:
        self._listeners.append(callback)

        def unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)
        return unsubscribe

    async def _emit(self, event: AuthEvent, session: AuthSession | None) -> None:
        for cb in list(self._listeners):
            try:
                res = cb(event, session)
                if inspect.isawaitable(res):
                    await res
            except Exception:
                log.exception("auth_listener_failed", auth_event=event.value)

    def _issue(self, user: User) -> AuthSession:
        sub = str(user.id)
        return AuthSession(user=user, access=make_access_token(sub), refresh=make_refresh_token(sub))

    def _decode(self, token: str, token_type: str) -> dict:
        try:
            data = decode_token(token)
        except jwt.PyJWTError:
            raise AuthError("Invalid token", "invalid_token")
        if data.get("type") != token_type:
            raise AuthError("Wrong token type", "invalid_token")
        if data.get("jti") in self._revoked:
            raise AuthError("Session has been signed out", "session_revoked")
        return data

    async def _load_user(self, user_id: str) -> User | None:
        uid = _as_uuid(user_id)
        if uid is None:
            return None
        async with self._session_factory() as s:
            return await s.get(User, uid)

    async def get_session(self, access_token: str | None) -> AuthSession | None:
        if not access_token:
            return None
        try:
            data = self._decode(access_token, "access")
        except AuthError:
            return None
        user = await self._load_user(data["sub"])
        return AuthSession(user=user, access=access_token) if user else None

    async def sign_up(self, email: str, password: str, full_name: str) -> AuthSession:
        email = email.strip().lower()
        async with self._session_factory() as s:
            if await s.scalar(select(User).where(User.email == email)):
                raise AuthError("Email already registered", "email_taken")
            user = User(
                email=email,
                password_hash=hash_password(password),
                full_name=full_name,
                avatar_url=default_avatar_url(full_name),
            )
            s.add(user)
            try:
                await s.commit()
            except IntegrityError:
                await s.rollback()
                raise AuthError("Email already registered", "email_taken")
            await s.refresh(user)
        session = self._issue(user)
        log.info("user_signed_up", user_id=str(user.id))
        await self._emit(AuthEvent.SIGNED_UP, session)
        return session

    async def sign_in(self, email: str, password: str) -> AuthSession:
        email = email.strip().lower()
        async with self._session_factory() as s:
            user = await s.scalar(select(User).where(User.email == email))
        if not user or not verify_password(password, user.password_hash):
            raise AuthError("Invalid login credentials", "invalid_credentials")
        session = self._issue(user)
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def refresh(self, refresh_token: str) -> AuthSession:
        data = self._decode(refresh_token, "refresh")
        user = await self._load_user(data["sub"])
        if not user:
            raise AuthError("User not found", "user_not_found")
        # one-shot refresh tokens
        self._revoked.add(data["jti"])
        session = self._issue(user)
        await self._emit(AuthEvent.TOKEN_REFRESHED, session)
        return session

    async def sign_out(self, refresh_token: str | None = None) -> None:
        if refresh_token:
            try:
                self._revoked.add(self._decode(refresh_token, "refresh")["jti"])
            except AuthError as e:
                log.debug("sign_out_token_ignored", reason=e.code)
        await self._emit(AuthEvent.SIGNED_OUT, None)


def _as_uuid(value: str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None
