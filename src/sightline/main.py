"""Sightline application entrypoint."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.gzip import GZipMiddleware
from sqlmodel import Session
from starlette.middleware.base import BaseHTTPMiddleware

import sightline.database as db_module
from sightline.config import settings
from sightline.push.worker import IngestWorker

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


def _open_session() -> Session:
    # Resolved per payload so a swapped engine (tests) is picked up
    return Session(db_module.engine)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application startup/shutdown lifecycle."""
    # Import models to register them with SQLModel before init_db()
    import sightline.registry.models  # noqa: F401

    db_module.init_db(reset=settings.reset_schema_on_startup)
    logger.info("Database initialized")

    worker = IngestWorker(
        _open_session,
        secret=settings.secret,
        workers=settings.ingest_workers,
        maxsize=settings.ingest_queue_size,
    )
    await worker.start()
    app.state.ingest_worker = worker

    yield

    await worker.stop()
    logger.info("Ingest workers stopped")


app = FastAPI(
    title="Sightline",
    description="Location push API receiver and recent client sightings",
    version="0.1.0",
    lifespan=lifespan,
)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response


app.add_middleware(SecurityHeadersMiddleware)
# zip content when possible
app.add_middleware(GZipMiddleware, minimum_size=500)


# Register routers
from sightline.api.routes import router as api_router  # noqa: E402

app.include_router(api_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


def main() -> None:
    import uvicorn

    logger.info("Starting Sightline on %s:%d", settings.host, settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
