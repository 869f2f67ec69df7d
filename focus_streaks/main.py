import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Depends
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from sqlalchemy import text

from focus_streaks.db.base import get_db
from focus_streaks.core.config import settings
from focus_streaks.core.observability import setup_logging
from focus_streaks.routers import sessions as sessions_router
from focus_streaks.routers import streaks as streaks_router
from focus_streaks.core.errors import (
    StreaksException,
    streaks_exception_handler,
    validation_exception_handler,
    unhandled_exception_handler,
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    logger.info(
        "Focus streaks API started (env=%s, qualifying_minutes=%d)",
        settings.APP_ENV,
        settings.QUALIFYING_MINUTES,
    )
    yield
    logger.info("Focus streaks API shutting down")


app = FastAPI(
    title="Focus Streaks API",
    description=(
        "**Consecutive-day focus streaks**\n\n"
        "Accepts timestamped focus sessions, splits them at local midnights of the "
        "user's IANA timezone, and tracks how many consecutive civil days reached "
        "the qualifying minute threshold.\n\n"
        "All error responses follow the `{code, message, details}` envelope."
    ),
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# --- Exception handlers (most specific first) ---
app.add_exception_handler(StreaksException, streaks_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)

# --- Routers ---
app.include_router(sessions_router.router)
app.include_router(streaks_router.router)


@app.get("/health", tags=["health"], summary="Health check")
def health(db: Session = Depends(get_db)):
    """
    Returns `{"status": "ok", "db": "ok"}` when both the API and the database
    are reachable. Returns HTTP 503 if the DB is down.
    """
    try:
        db.execute(text("SELECT 1"))
        db_status = "ok"
    except Exception:
        logger.exception("Health check could not reach the database")
        db_status = "unreachable"

    if db_status != "ok":
        return JSONResponse(
            status_code=503,
            content={"status": "error", "db": db_status},
        )
    return {"status": "ok", "db": "ok", "env": settings.APP_ENV}
