from __future__ import annotations

import logging
import socket
import sqlite3
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, AsyncIterator, Dict, Optional

import psutil
from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__, store
from .config import Settings, load_settings
from .deps import get_settings
from .errors import MemoriesError, UpstreamUnavailable, ValidationFailed
from .logging_config import setup_logging
from .services.auth import router as auth_router
from .services.memories import router as memories_router
from .services.users import router as users_router

logger = logging.getLogger(__name__)


# ----------------------------
# Health router
# ----------------------------

health_router = APIRouter(prefix="/health", tags=["health"])


@health_router.get("/ping")
async def ping() -> Dict[str, Any]:
    return {"status": "ok", "message": "Memories API is alive"}


@health_router.get("/system")
def system_health() -> Dict[str, Any]:
    hostname = socket.gethostname()
    boot_time = datetime.fromtimestamp(psutil.boot_time(), tz=timezone.utc)
    now = datetime.now(timezone.utc)
    uptime_seconds = (now - boot_time).total_seconds()

    virtual_mem = psutil.virtual_memory()
    disk_usage = psutil.disk_usage("/")

    return {
        "status": "ok",
        "hostname": hostname,
        "time_utc": now.isoformat(),
        "uptime_seconds": uptime_seconds,
        "cpu_percent": psutil.cpu_percent(interval=0.2),
        "memory": {
            "total": virtual_mem.total,
            "available": virtual_mem.available,
            "percent": virtual_mem.percent,
        },
        "disk": {
            "total": disk_usage.total,
            "free": disk_usage.free,
            "percent": disk_usage.percent,
        },
    }


@health_router.get("/database")
def database_health(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    start = time.time()
    exists = settings.db_path == ":memory:" or Path(settings.db_path).is_file()

    if not exists:
        return {
            "status": "error",
            "message": f"Database file not found at {settings.db_path}",
            "duration_seconds": time.time() - start,
        }

    try:
        conn = sqlite3.connect(settings.db_path)
        conn.execute("SELECT 1")
        conn.close()
    except sqlite3.Error as exc:
        return {
            "status": "error",
            "message": f"Error accessing DB: {exc}",
            "duration_seconds": time.time() - start,
        }

    return {
        "status": "ok",
        "message": "Database accessible",
        "duration_seconds": time.time() - start,
    }


# ----------------------------
# Exception handlers
# ----------------------------

async def memories_error_handler(request: Request, exc: MemoriesError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    fields = [".".join(str(p) for p in err.get("loc", ()) if p != "body") for err in exc.errors()]
    fields = [f for f in fields if f]
    message = "Missing or invalid fields: " + ", ".join(fields) if fields else "Invalid request"
    return JSONResponse(status_code=400, content=ValidationFailed(message).to_payload())


async def sqlite_error_handler(request: Request, exc: sqlite3.Error) -> JSONResponse:
    logger.error("store error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=503, content=UpstreamUnavailable().to_payload())


# ----------------------------
# App factory
# ----------------------------

@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    settings: Settings = app.state.settings
    if settings.token_secret == Settings.token_secret:
        logger.warning("MEMORIES_TOKEN_SECRET is not set; using the built-in development secret")
    conn = store.connect(settings.db_path)
    conn.close()
    logger.info("store ready at %s", settings.db_path)
    yield


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    settings = settings or load_settings()
    setup_logging(settings)

    app = FastAPI(title="Memories API", version=__version__, lifespan=_lifespan)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in settings.cors_origin.split(",") if o.strip()] or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(MemoriesError, memories_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(sqlite3.Error, sqlite_error_handler)

    @app.get("/", include_in_schema=False)
    async def root() -> Dict[str, Any]:
        return {"message": "Welcome to Memories API", "version": __version__}

    app.include_router(health_router)
    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(memories_router, prefix=settings.api_prefix)
    app.include_router(users_router, prefix=settings.api_prefix)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("memories.main:app", host="0.0.0.0", port=5000)
