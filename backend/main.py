"""NFS Manager — FastAPI backend entry point."""

import asyncio
import logging
import sys

from fastapi import Depends, FastAPI, HTTPException, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from config import settings
from deps import get_backup_manager, get_config_store
from exceptions import ExportsError
from models import LoginRequest, LoginResponse, UserInfo
from services.validation import ValidationError
from middleware.auth import (
    check_rate_limit,
    get_bearer_token,
    get_current_user,
    load_admin_credentials,
    login,
    logout,
)
from routes import backups, exports, system
from db import cleanup_sessions, close_db

logger = logging.getLogger(__name__)

app = FastAPI(
    title="NFS Manager",
    version="0.1.0",
    description="Web dashboard and API for NFS export configuration",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Exception handlers ---


@app.exception_handler(ExportsError)
async def exports_error_handler(request: Request, exc: ExportsError) -> JSONResponse:
    """Map export/backup exceptions to HTTP responses with safe error messages."""
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message},
    )


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    """Map input validation errors to 400 responses."""
    return JSONResponse(
        status_code=400,
        content={"error": str(exc)},
    )


# --- Lifecycle ---


async def session_cleanup_task() -> None:
    """Purge expired sessions once an hour."""
    while True:
        try:
            await asyncio.sleep(3600)
            removed = await cleanup_sessions()
            if removed:
                logger.info("Removed %d expired session(s)", removed)
        except asyncio.CancelledError:
            break
        except Exception:
            logger.exception("Session cleanup: unexpected error")


@app.on_event("startup")
async def startup() -> None:
    """Prepare the configuration document, backup directory, and admin credentials."""
    store = get_config_store()
    backup_manager = get_backup_manager()
    try:
        store.initialize()
        backup_manager.ensure_directory()
    except ExportsError as e:
        logger.critical("Cannot prepare configuration storage: %s", e.message)
        sys.exit(1)

    logger.info("Configuration file: %s", store.path)
    logger.info("Backup directory: %s (keeping %d)", backup_manager.directory, backup_manager.retention)

    load_admin_credentials()

    app.state.cleanup_task = asyncio.create_task(session_cleanup_task())


@app.on_event("shutdown")
async def shutdown() -> None:
    task = getattr(app.state, "cleanup_task", None)
    if task is not None:
        task.cancel()
    await close_db()


# --- Auth routes ---


@app.post("/api/login", response_model=LoginResponse)
async def auth_login(body: LoginRequest):
    if not check_rate_limit(body.username):
        raise HTTPException(status_code=429, detail="Too many login attempts. Try again later.")
    return await login(body.username, body.password)


@app.post("/api/logout")
async def auth_logout(token: str = Depends(get_bearer_token)):
    return await logout(token)


@app.get("/api/me", response_model=UserInfo)
async def auth_me(user: dict = Depends(get_current_user)):
    return user


# --- Mount routers ---

app.include_router(exports.router, prefix="/api/exports", tags=["exports"])
app.include_router(backups.router, prefix="/api/backups", tags=["backups"])
app.include_router(system.router, prefix="/api", tags=["system"])


# --- Health check (unauthenticated) ---


@app.get("/api/health")
async def health() -> dict:
    """Health check — verifies the configuration file and backup directory are present."""
    config_ok = get_config_store().path.is_file()
    backups_ok = get_backup_manager().directory.is_dir()

    return {
        "status": "ok" if config_ok and backups_ok else "degraded",
        "config": config_ok,
        "backups": backups_ok,
    }


# --- Serve frontend static files (production) ---
# Must be mounted AFTER all API routes so /api/* takes priority.

_public_dir = settings.public_dir.resolve()
_index_html = _public_dir / "index.html"

if _public_dir.is_dir() and _index_html.is_file():
    _assets_dir = _public_dir / "assets"
    if _assets_dir.is_dir():
        app.mount("/assets", StaticFiles(directory=str(_assets_dir)), name="static-assets")

    # SPA fallback: serve index.html for all non-API routes
    @app.get("/{full_path:path}")
    async def serve_spa(full_path: str) -> Response:
        file_path = (_public_dir / full_path).resolve()
        if (
            full_path
            and not full_path.startswith("api/")
            and file_path.is_relative_to(_public_dir)
            and file_path.is_file()
        ):
            return FileResponse(str(file_path))
        return FileResponse(
            str(_index_html),
            headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
        )
