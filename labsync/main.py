import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from labsync.core.config import settings
from labsync.core.errors import (
    InfrastructureError,
    LabSyncError,
    LockedError,
    NotFoundError,
    UploadWindowError,
    ValidationError,
)
from labsync.core.logging_middleware import LoggingMiddleware
from labsync.db.init_db import init_db

from labsync.routers.assignments import router as assignments_router
from labsync.routers.auth import router as auth_router
from labsync.routers.classes import router as classes_router
from labsync.routers.dashboard import router as dashboard_router
from labsync.routers.distributions import router as distributions_router
from labsync.routers.exports import router as exports_router
from labsync.routers.grades import router as grades_router
from labsync.routers.groups import router as groups_router
from labsync.routers.submissions import router as submissions_router
from labsync.routers.users import router as users_router

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(title="LabSyncPro")

# Middleware
app.add_middleware(LoggingMiddleware)


def _error_body(exc: LabSyncError, **extra) -> dict:
    return {"detail": exc.message, "field": exc.field, "code": exc.code, **extra}


# Error kinds -> HTTP
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content=_error_body(exc))


@app.exception_handler(LockedError)
async def locked_error_handler(request: Request, exc: LockedError):
    return JSONResponse(status_code=423, content=_error_body(exc))


@app.exception_handler(UploadWindowError)
async def upload_window_error_handler(request: Request, exc: UploadWindowError):
    return JSONResponse(status_code=403, content=_error_body(exc, reason=exc.reason))


@app.exception_handler(NotFoundError)
async def not_found_error_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content=_error_body(exc))


@app.exception_handler(InfrastructureError)
async def infrastructure_error_handler(request: Request, exc: InfrastructureError):
    logger.exception("Infrastructure failure on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=503,
        content={"detail": "Service temporarily unavailable, please try again", "field": None, "code": exc.code},
    )


# Health check
@app.get("/health")
def health():
    return {"status": "ok"}


# Startup event
@app.on_event("startup")
def on_startup():
    init_db()


# Include routers
app.include_router(auth_router, prefix="/auth", tags=["auth"])
app.include_router(users_router, prefix="/users", tags=["users"])
app.include_router(classes_router, prefix="/classes", tags=["classes"])
app.include_router(groups_router, prefix="/groups", tags=["groups"])
app.include_router(assignments_router, prefix="/assignments", tags=["assignments"])
app.include_router(distributions_router, prefix="/distributions", tags=["distributions"])
app.include_router(submissions_router, prefix="/submissions", tags=["submissions"])
app.include_router(grades_router, prefix="/grades", tags=["grades"])
app.include_router(dashboard_router, prefix="/dashboard", tags=["dashboard"])
app.include_router(exports_router, prefix="/export", tags=["export"])
