import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.routes import appointments, calendar, chat, slots, wards
from app.core.config import settings, _ENV_FILE
from app.core.exceptions import (
    NotFoundError,
    SchedulerError,
    SlotConflictError,
    UpstreamCalendarError,
    ValidationError,
)
from app.services.calendar_gateway import get_calendar_gateway

if os.getenv("ENV") != "production":
    logging.basicConfig(level=logging.DEBUG)
else:
    logging.basicConfig(
        level=logging.INFO,
        format='{"time": "%(asctime)s", "level": "%(levelname)s", "message": "%(message)s"}',
    )
logger = logging.getLogger(__name__)

# Domain errors that reach the boundary become these HTTP statuses
ERROR_STATUS: dict[type[SchedulerError], int] = {
    NotFoundError: 404,
    ValidationError: 400,
    SlotConflictError: 409,
    UpstreamCalendarError: 502,
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Loading .env from: %s (exists: %s)", _ENV_FILE, _ENV_FILE.exists())
    logger.info("Scheduling timezone: %s, search window: %d days", settings.timezone, settings.slot_search_days)
    if not settings.assistant_enabled:
        logger.warning("Chat assistant: NOT configured. Set ANTHROPIC_API_KEY in %s", _ENV_FILE)
    if not settings.calendar_oauth_enabled:
        logger.warning("Calendar OAuth: NOT configured. Set AURINKO_CLIENT_ID and AURINKO_CLIENT_SECRET")
    yield
    await get_calendar_gateway().close()


app = FastAPI(
    title="Ward Interview Scheduler API",
    description="Interview booking between ward members and the bishopric",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type"],
)

app.include_router(chat.router, prefix="/api/v1")
app.include_router(slots.router, prefix="/api/v1")
app.include_router(appointments.router, prefix="/api/v1")
app.include_router(calendar.router, prefix="/api/v1")
app.include_router(wards.router, prefix="/api/v1")


def _cors_headers(origin: str | None) -> dict[str, str]:
    """Add CORS headers to error responses so the browser doesn't block them."""
    headers = {
        "Access-Control-Allow-Credentials": "true",
        "Access-Control-Allow-Methods": "GET, POST, PUT, PATCH, DELETE, OPTIONS",
        "Access-Control-Allow-Headers": "Authorization, Content-Type",
    }
    if origin and origin in settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = origin
    elif settings.cors_origins_list:
        headers["Access-Control-Allow-Origin"] = settings.cors_origins_list[0]
    return headers


@app.exception_handler(SchedulerError)
async def scheduler_exception_handler(request: Request, exc: SchedulerError) -> JSONResponse:
    status_code = next(
        (code for cls, code in ERROR_STATUS.items() if isinstance(exc, cls)),
        500,
    )
    if status_code >= 500:
        logger.error("Scheduling error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
        headers=_cors_headers(request.headers.get("origin")),
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the failure; never leak internals to the caller."""
    headers = _cors_headers(request.headers.get("origin"))
    if isinstance(exc, HTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail},
            headers=headers,
        )
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"},
        headers=headers,
    )


@app.get("/health")
async def health() -> dict:
    return {"status": "ok"}
