import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from apps.core.cache import CachedMetadataProvider, metadata_cache
from apps.core.exceptions import CollaboratorUnavailableError, InvalidOverrideError
from apps.core.tmdb import TMDBService
from apps.tracker.router import router as tracker_router
from config import settings
from database import create_db_and_tables

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()
    # The metadata cache belongs to the app, not to a module
    app.state.metadata = CachedMetadataProvider(
        TMDBService(),
        metadata_cache(settings.METADATA_CACHE_TTL_SECONDS),
    )
    if not settings.TMDB_API_KEY:
        logger.warning("TMDB_API_KEY is not set; show metadata lookups will fail and feeds will degrade")
    yield
    await app.state.metadata.close()

app = FastAPI(title=settings.PROJECT_NAME, lifespan=lifespan)

# Middlewares
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

# Routers
app.include_router(tracker_router)


@app.exception_handler(InvalidOverrideError)
async def invalid_override_handler(request: Request, exc: InvalidOverrideError):
    return JSONResponse(status_code=422, content={"detail": str(exc)})

@app.exception_handler(CollaboratorUnavailableError)
async def collaborator_unavailable_handler(request: Request, exc: CollaboratorUnavailableError):
    logger.warning(f"{exc.collaborator} unavailable during {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=503,
        content={"detail": str(exc), "retryable": exc.retryable},
        headers={"Retry-After": "5"},
    )


@app.get("/")
def home():
    return {"name": settings.PROJECT_NAME, "status": "ok"}

@app.post("/admin/cache/invalidate")
def invalidate_cache(request: Request, show_id: Optional[int] = None):
    metadata = request.app.state.metadata
    if show_id is not None:
        removed = metadata.invalidate_show(show_id)
    else:
        removed = metadata.clear()
    return {"removed": removed}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
