"""Event Gallery Server - FastAPI Application Entry Point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from gallery.config import settings
from gallery.database import engine, init_db
from gallery.errors import GalleryError, NotFound, StoreUnavailable, Unauthorized, ValidationError
from gallery.services.container import build_services

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database, stores and services on startup."""
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    init_db(engine)

    services = build_services(settings, engine)
    try:
        await services.objects.ensure_bucket()
    except StoreUnavailable as e:
        # the read path degrades on its own; uploads fail until the store is back
        logger.warning("Object store not ready at startup: %s", e)
    app.state.gallery = services
    logger.info("%s started (storage: %s)", settings.app_name, services.objects.name)

    yield


app = FastAPI(
    title="Event Gallery",
    description="Photo gallery of events backed by a database and an object store",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Error mapping ---

def _status_for(exc: GalleryError) -> int:
    if isinstance(exc, NotFound):
        return 404
    if isinstance(exc, ValidationError):
        return 400
    if isinstance(exc, Unauthorized):
        return 401
    return 500


@app.exception_handler(GalleryError)
async def gallery_error_handler(request: Request, exc: GalleryError):
    status_code = _status_for(exc)
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status_code, content=exc.to_dict())


# --- Register API routers ---
from gallery.api.admin import router as admin_router  # noqa: E402
from gallery.api.auth import router as auth_router  # noqa: E402
from gallery.api.events import router as events_router  # noqa: E402
from gallery.api.images import router as images_router  # noqa: E402

API_PREFIX = "/api"

app.include_router(auth_router, prefix=API_PREFIX)
app.include_router(events_router, prefix=API_PREFIX)
app.include_router(admin_router, prefix=API_PREFIX)
app.include_router(images_router, prefix=API_PREFIX)


@app.get("/")
def root():
    """Server info."""
    return {
        "name": settings.app_name,
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/api/health")
def health(request: Request):
    services = getattr(request.app.state, "gallery", None)
    cache = services.cache if services else None
    return {
        "status": "ok",
        "storage": services.objects.name if services else None,
        "cache_populated": bool(cache and cache.is_populated),
    }
