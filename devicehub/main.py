# devicehub/main.py
from contextlib import asynccontextmanager

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from fastapi import FastAPI, Request, status as fastapi_status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi.errors import RateLimitExceeded
from starlette.exceptions import HTTPException as StarletteHTTPException

from devicehub.api.api import api_router
from devicehub.api.responses import error_body
from devicehub.core.config import (
    CORS_ORIGINS,
    OVERDUE_CHECK_HOURS,
    SCHEDULER_ENABLED,
    SCHEDULER_TIMEZONE,
    setup_logging,
)
from devicehub.core.errors import DeviceHubError
from devicehub.core.rate_limiter import get_rate_limiter, rate_limit_exception_handler
from devicehub.db.database import close_db, init_db
from devicehub.middleware.authentication import AuthMiddleware
from devicehub.middleware.logging import RequestLoggingMiddleware
from devicehub.scheduler.jobs import notify_overdue_loans

setup_logging()

scheduler = AsyncIOScheduler(timezone=SCHEDULER_TIMEZONE)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Application startup...")
    await init_db()

    if SCHEDULER_ENABLED:
        scheduler.add_job(
            notify_overdue_loans,
            trigger=IntervalTrigger(hours=OVERDUE_CHECK_HOURS),
            id="notify_overdue_loans_job",
            name="Notify borrowers of overdue loans",
            replace_existing=True,
            misfire_grace_time=60 * 15,
        )
        scheduler.start()
        logger.info(f"Scheduler started with timezone: {scheduler.timezone}")
    yield
    logger.info("Application shutdown...")
    if scheduler.running:
        scheduler.shutdown()
    close_db()


app = FastAPI(
    title="Device Hub API",
    description="Device lending: inventory, borrow requests, renewals and returns.",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Error handling ---
def _describe_validation_errors(errors) -> str:
    parts = []
    for err in errors:
        location = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path"))
        if err.get("type") == "missing":
            parts.append(f"{location} is required")
        else:
            message = err.get("msg", "invalid value").removeprefix("Value error, ")
            parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Invalid request"


app.add_exception_handler(RateLimitExceeded, rate_limit_exception_handler)


@app.exception_handler(DeviceHubError)
async def devicehub_exception_handler(request: Request, exc: DeviceHubError):
    logger.info(f"{type(exc).__name__} on {request.method} {request.url.path}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=error_body(exc.message))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    logger.warning(f"Validation Error on {request.url.path}: {exc.errors()}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_400_BAD_REQUEST,
        content=error_body(_describe_validation_errors(exc.errors())),
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    logger.warning(f"HTTP Exception: Status={exc.status_code}, Detail={exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(str(exc.detail)),
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.opt(exception=exc).error(f"Unhandled Exception on {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=fastapi_status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body("An internal server error occurred."),
    )


# --- Middleware (last added runs first) ---
app.add_middleware(AuthMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.state.limiter = get_rate_limiter()
app.add_middleware(GZipMiddleware, minimum_size=500)
if CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_router)


@app.get("/")
async def read_root():
    return {"success": True, "message": "Device Hub API"}
