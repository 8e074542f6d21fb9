"""FastAPI application entrypoint for the table allocation engine."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from apps.api.routers import availability, reservations
from core.exceptions import ReservationError
from core.logging import setup_logging
from core.settings import settings
from db.session import close_db


setup_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Schema is owned by Alembic migrations; the engine is created on first use.
    """
    logger.info(f"Starting {settings.app_name}...", extra={"environment": settings.app_env})

    yield

    logger.info(f"Shutting down {settings.app_name}...")
    close_db()


app = FastAPI(
    title=settings.app_name,
    description="Availability and table allocation for restaurant reservations",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ReservationError)
async def reservation_error_handler(request: Request, exc: ReservationError) -> JSONResponse:
    """Render engine errors as JSON with their HTTP status."""
    if exc.status_code >= 500:
        logger.warning(
            "Request rejected",
            extra={"path": request.url.path, "code": exc.code, "detail": exc.message},
        )
    headers = {"Retry-After": "1"} if exc.retryable else None
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


app.include_router(availability.router, prefix=settings.api_v1_prefix)
app.include_router(reservations.router, prefix=settings.api_v1_prefix)


@app.get("/")
async def root():
    """Root endpoint - health check."""
    return {
        "app": settings.app_name,
        "status": "running",
        "version": "1.0.0",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "apps.api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
