"""Application entry point for the marketplace API."""
from __future__ import annotations

import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles

from .config import get_settings
from .database import init_db
from .errors import InputValidationError, MarketplaceError
from .routers import (
    auth_router,
    comments_router,
    messages_router,
    notifications_router,
    pages_router,
    posts_router,
    profiles_router,
    realtime_router,
)

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title=settings.app_name, version=settings.api_version)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["X-Anonymous-Id"],
)

app.include_router(pages_router)
app.include_router(auth_router)
app.include_router(posts_router)
app.include_router(comments_router)
app.include_router(messages_router)
app.include_router(notifications_router)
app.include_router(profiles_router)
app.include_router(realtime_router)


@app.exception_handler(MarketplaceError)
async def _marketplace_error_handler(request: Request, exc: MarketplaceError) -> JSONResponse:
    body: dict[str, object] = {"detail": exc.message}
    if isinstance(exc, InputValidationError):
        body["errors"] = exc.errors
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=body)


@app.on_event("startup")
async def _startup() -> None:
    """Ensure the database schema exists before serving."""

    try:
        init_db()
    except Exception:  # pragma: no cover - best effort logging
        logger.exception("Database initialisation failed")
        raise
    logger.info("%s %s ready (storage=%s)", settings.app_name, settings.api_version, settings.storage_backend)


@app.get("/health", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"service": settings.app_name, "version": settings.api_version}


def _mount_static(directory: Path, route: str, name: str) -> None:
    directory.mkdir(parents=True, exist_ok=True)
    app.mount(route, StaticFiles(directory=str(directory), check_dir=False), name=name)


if settings.storage_backend.lower() == "local" and settings.media_base_url.startswith("/"):
    _mount_static(Path(settings.local_storage_dir).expanduser(), settings.media_base_url.rstrip("/") or "/media", "media")
