from __future__ import annotations
import uuid
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from leetuiux.config import settings
from leetuiux.logging_setup import configure_logging
from leetuiux.routes.system import router as system_router
from leetuiux.routes.auth import router as auth_router
from leetuiux.routes.challenges import router as challenges_router
from leetuiux.routes.submissions import router as submissions_router
from leetuiux.routes.comments import router as comments_router
from leetuiux.routes.admin import router as admin_router
from leetuiux.services.auth import AuthService
from leetuiux.services.auth_context import AuthContext
import structlog

configure_logging()
log = structlog.get_logger()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    log.info("startup", env=settings.environment, version=settings.app_version, git_sha=settings.git_sha)
    ctx = AuthContext(AuthService())
    await ctx.start()
    app.state.auth = ctx
    yield
    # Shutdown
    await ctx.close()
    app.state.auth = None
    log.info("shutdown")

app = FastAPI(
    title=f"{settings.app_display_name} API",
    version=settings.app_version,
    lifespan=lifespan,
    description=f"{settings.app_display_name} API for UI/UX design challenges and submissions",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.environment == "dev" else settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(system_router)
app.include_router(auth_router)
app.include_router(challenges_router)
app.include_router(submissions_router)
app.include_router(comments_router)
app.include_router(admin_router)

@app.middleware("http")
async def add_request_id(request: Request, call_next):
    rid = request.headers.get("x-request-id") or str(uuid.uuid4())
    request.state.request_id = rid
    structlog.contextvars.bind_contextvars(request_id=rid)
    try:
        response: Response = await call_next(request)
    finally:
        structlog.contextvars.clear_contextvars()
    response.headers["X-Request-ID"] = rid
    return response
