"""
Matchday API Server

FastAPI server for team management: accounts, matches, attendance, statistics
and real-time match events.
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
import os
import uvicorn
from slowapi import _rate_limit_exceeded_handler  # type: ignore
from slowapi.errors import RateLimitExceeded  # type: ignore
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession

from matchday.api.routes import router, limiter as routes_limiter
from matchday.database import db
from matchday.services.errors import MatchdayError
from matchday.services.notification_scheduler import get_notification_scheduler

# Set up logging
# Allow log level to be configured via environment variable (default: INFO)
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
numeric_level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(
    level=numeric_level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan handler for startup and shutdown events."""
    logger.info("Starting up Matchday API...")

    # Create tables that migrations have not created yet
    try:
        await db.init_database()
        logger.info("Database initialized")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}", exc_info=True)

    try:
        get_notification_scheduler().start()
    except Exception as e:
        logger.error(f"Failed to start match reminder worker: {e}", exc_info=True)

    yield  # App is running

    logger.info("Shutting down Matchday API...")

    try:
        get_notification_scheduler().stop()
    except Exception as e:
        logger.error(f"Error stopping match reminder worker: {e}", exc_info=True)


app = FastAPI(
    title="Matchday API",
    description="API for team match scheduling, attendance and player statistics",
    version="1.0.0",
    lifespan=lifespan,
)

# Setup rate limiter
app.state.limiter = routes_limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)


async def matchday_error_handler(request: Request, exc: MatchdayError) -> JSONResponse:
    """Render domain errors as {"error": kind, "detail": message}."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "detail": exc.message},
    )


app.add_exception_handler(MatchdayError, matchday_error_handler)

# Add CORS middleware - origins configured via ALLOWED_ORIGINS env var
allowed_origins = os.getenv("ALLOWED_ORIGINS", "http://localhost:3000").split(",")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["*"],
)

# Include API routes
app.include_router(router)


@app.get("/api/health")
async def health_check(session: AsyncSession = Depends(db.get_db_session)):
    """
    Health check endpoint.

    Returns:
        dict: Service and database status
    """
    try:
        await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check database ping failed: {e}")
        return JSONResponse(
            status_code=503,
            content={"status": "unhealthy", "database": "unavailable"},
        )
    return {"status": "healthy", "database": "ok"}


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
