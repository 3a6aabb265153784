"""Photo Library Web Application."""
import logging
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from app.core.config import settings
from app.core.container import build_container
from app.core.database import create_db_and_tables, engine
from app.core.errors import (
    NotConnected,
    NotFound,
    PersistenceError,
    PhotoLibraryError,
    ReauthRequired,
    StorageError,
)
from app.core.scheduler import shutdown_scheduler, start_scheduler
from app.routes import albums, categories, drive, photos

# Configure logging
log_dir = Path.home() / ".logs" / "photo-library"
log_dir.mkdir(parents=True, exist_ok=True)
log_file = log_dir / "latest.log"

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    filename=str(log_file),
)
logger = logging.getLogger(__name__)

ERROR_STATUS = {
    NotConnected: 400,
    ReauthRequired: 401,
    NotFound: 404,
    PersistenceError: 500,
    StorageError: 502,
    PhotoLibraryError: 500,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown lifecycle."""
    # Startup
    logger.info("Starting Photo Library application")
    create_db_and_tables()
    app.state.container = build_container(settings, engine)
    start_scheduler(app.state.container)
    yield
    # Shutdown
    shutdown_scheduler()
    logger.info("Photo Library application shut down")


app = FastAPI(
    title=settings.app_name,
    description="A photo library that stores photos in each user's own Google Drive",
    version="0.1.0",
    lifespan=lifespan,
)

# Configure CORS for external access
origins = (
    ["*"]
    if settings.allowed_origins == "*"
    else [o.strip() for o in settings.allowed_origins.split(",")]
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


async def photo_library_error_handler(request: Request, exc: PhotoLibraryError):
    """Report expected failures as ``{"error": message}``."""
    status_code = next(
        code for error_class, code in ERROR_STATUS.items() if isinstance(exc, error_class)
    )
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse({"error": exc.message}, status_code=status_code)


async def value_error_handler(request: Request, exc: ValueError):
    return JSONResponse({"error": str(exc)}, status_code=400)


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=exc.headers)


for error_class in ERROR_STATUS:
    app.add_exception_handler(error_class, photo_library_error_handler)
app.add_exception_handler(ValueError, value_error_handler)
app.add_exception_handler(StarletteHTTPException, http_error_handler)

# Include routers
app.include_router(drive.router)
app.include_router(photos.router)
app.include_router(albums.router)
app.include_router(categories.router)


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy", "app": settings.app_name}
