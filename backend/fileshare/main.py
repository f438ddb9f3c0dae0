"""FastAPI application entry point."""
import asyncio
import logging
from contextlib import asynccontextmanager, suppress
from datetime import datetime
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from fileshare.config import Settings, settings
from fileshare.database import Database
from fileshare.errors import FileShareError, StorageUnavailable
from fileshare.models.base import utcnow
from fileshare.routes.files import router as files_router
from fileshare.schemas.common import ErrorResponse
from fileshare.services.blob_storage import LocalBlobStorage
from fileshare.services.delivery import DeliveryController
from fileshare.services.expiry_sweeper import sweep_loop
from fileshare.services.identity_store import IdentityStore

logger = logging.getLogger(__name__)


def _build_blob_storage(app_settings: Settings) -> LocalBlobStorage | None:
    if app_settings.FILE_STORAGE_TYPE == "database":
        return None
    if app_settings.FILE_STORAGE_TYPE == "local":
        return LocalBlobStorage(app_settings.FILE_STORAGE_PATH)
    raise ValueError(f"Unknown storage type: {app_settings.FILE_STORAGE_TYPE}")


def create_app(
    app_settings: Settings = settings,
    clock: Callable[[], datetime] = utcnow,
) -> FastAPI:
    """Build the API. The database and controller are created in the lifespan."""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Create tables on startup, start the expiry sweeper if enabled."""
        blob_storage = _build_blob_storage(app_settings)
        database = Database(app_settings)
        await database.create_all()

        store = IdentityStore(
            database.session_factory,
            blob_storage=blob_storage,
            timeout=app_settings.STORAGE_TIMEOUT_SECONDS,
        )
        app.state.database = database
        app.state.controller = DeliveryController(
            store,
            ttl_seconds=app_settings.FILE_TTL_SECONDS,
            max_upload_bytes=app_settings.MAX_UPLOAD_BYTES,
            clock=clock,
        )
        logger.info(
            "File share API ready (storage=%s, ttl=%ss)",
            app_settings.FILE_STORAGE_TYPE, app_settings.FILE_TTL_SECONDS,
        )

        sweep_task = None
        if app_settings.EXPIRY_SWEEP_INTERVAL_SECONDS > 0:
            sweep_task = asyncio.create_task(
                sweep_loop(store, app_settings.EXPIRY_SWEEP_INTERVAL_SECONDS, clock)
            )

        yield

        # Cleanup
        if sweep_task is not None:
            sweep_task.cancel()
            with suppress(asyncio.CancelledError):
                await sweep_task
        await database.dispose()

    app = FastAPI(
        title="File Share API",
        version="1.0.0",
        description="Upload files, share them by id, view or download them until they expire.",
        lifespan=lifespan,
    )

    # CORS
    origins = [o.strip() for o in app_settings.CORS_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=origins != ["*"],
        allow_methods=["GET", "POST", "DELETE", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=["Content-Disposition"],
    )

    @app.exception_handler(FileShareError)
    async def file_share_error_handler(request: Request, exc: FileShareError):
        body = ErrorResponse(error=exc.public_message, code=exc.code)
        if isinstance(exc, StorageUnavailable) and app_settings.is_development:
            body.detail = str(exc)
        return JSONResponse(status_code=exc.status_code, content=body.model_dump(exclude_none=True))

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            body = ErrorResponse(error="Endpoint not found", code="NotFound")
        else:
            body = ErrorResponse(error=str(exc.detail), code="HTTPError")
        return JSONResponse(
            status_code=exc.status_code,
            content=body.model_dump(exclude_none=True),
            headers=getattr(exc, "headers", None),
        )

    @app.get("/api/health")
    async def health_check(request: Request):
        """Verify API and database connectivity."""
        try:
            async with asyncio.timeout(app_settings.STORAGE_TIMEOUT_SECONDS):
                await request.app.state.database.ping()
        except TimeoutError:
            logger.warning("Health check timed out after %.1fs", app_settings.STORAGE_TIMEOUT_SECONDS)
            return {"status": "error", "database": "timeout"}
        except (SQLAlchemyError, OSError) as e:
            logger.warning(f"Health check failed: {e}")
            detail = str(e) if app_settings.is_development else "unavailable"
            return {"status": "error", "database": detail}
        return {"status": "ok", "database": "connected"}

    @app.get("/")
    async def index():
        return {
            "message": "File Share API is running",
            "version": app.version,
            "endpoints": {
                "upload": "POST /api/files/upload",
                "list": "GET /api/files",
                "metadata": "GET /api/files/:fileId",
                "view": "GET /api/files/view/:fileId",
                "download": "GET /api/files/download/:fileId",
                "delete": "DELETE /api/files/:fileId",
                "health": "GET /api/health",
            },
            "note": 'Use multipart/form-data with field name "file" to upload',
        }

    app.include_router(files_router)
    return app


logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.API_PORT)
