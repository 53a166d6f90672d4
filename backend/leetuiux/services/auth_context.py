from __future__ import annotations
import inspect
from typing import Any, Callable
from sqlalchemy.exc import SQLAlchemyError
import structlog

from leetuiux.models.user import User
from leetuiux.services.auth import AuthService, AuthSession, AuthEvent, AuthError
from leetuiux.services.result import Result

log = structlog.get_logger()

ContextListener = Callable[[AuthEvent, "User | None"], Any]


class AuthContext:
    """
    Process-wide view of the current session: `current_user` and a `loading`
    flag. Built once at startup, refreshed on every session-change event from
    the auth service, torn down on shutdown.
    """

    def __init__(self, auth: AuthService):
        self.auth = auth
        self.current_user: User | None = None
        self.loading = True
        self._listeners: list[ContextListener] = []
        self._detach: Callable[[], None] | None = None

    async def start(self, access_token: str | None = None) -> None:
        if self._detach is None:
            self._detach = self.auth.on_session_change(self._on_session_change)
        session = None
        try:
            session = await self.auth.get_session(access_token)
        except Exception:
            log.exception("initial_session_failed")
        finally:
            self.loading = False
        self.current_user = session.user if session else None
        await self._notify(AuthEvent.INITIAL_SESSION)

    async def close(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None
        self._listeners.clear()
        self.current_user = None
        self.loading = True

    def subscribe(self, listener: ContextListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self.unsubscribe(listener)

    def unsubscribe(self, listener: ContextListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    async def _on_session_change(self, event: AuthEvent, session: AuthSession | None) -> None:
        self.current_user = session.user if session else None
        self.loading = False
        log.info("auth_state_changed", auth_event=event.value,
                 user_id=str(self.current_user.id) if self.current_user else None)
        await self._notify(event)

    async def _notify(self, event: AuthEvent) -> None:
        for listener in list(self._listeners):
            try:
                res = listener(event, self.current_user)
                if inspect.isawaitable(res):
                    await res
            except Exception:
                log.exception("auth_context_listener_failed", auth_event=event.value)

    # ---------- actions ----------

    async def login(self, email: str, password: str) -> Result:
        try:
            session = await self.auth.sign_in(email, password)
        except AuthError as e:
            log.info("login_failed", reason=e.code)
            return Result.fail(e.message)
        except SQLAlchemyError as e:
            log.exception("login_error")
            return Result.fail(e)
        return Result.ok(session)

    async def signup(self, email: str, password: str, name: str) -> Result:
        try:
            session = await self.auth.sign_up(email, password, name)
        except AuthError as e:
            log.info("signup_failed", reason=e.code)
            return Result(success=False, error=e.message, action=e.code)
        except SQLAlchemyError as e:
            log.exception("signup_error")
            return Result.fail(e)
        return Result.ok(session)

    async def logout(self, refresh_token: str | None = None) -> Result:
        try:
            await self.auth.sign_out(refresh_token)
        except Exception as e:
            log.exception("logout_failed")
            return Result.fail(e)
        return Result.ok()

    def is_authenticated(self) -> bool:
        return self.current_user is not None
