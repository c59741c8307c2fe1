"""
main.py
───────
Strandly Hair Analysis Backend — FastAPI application entry point.

Startup sequence
────────────────
1. Load settings from .env (validated by pydantic-settings).
2. Configure logging.
3. Create database tables and load the product catalog and ingredient
   knowledge base via the lifespan hook, so bad seed data fails the boot.
4. Register CORS, security-header middleware and the per-route rate limiter.
5. Mount the v1 API router.
6. Register a global exception handler for clean error responses.
"""

import logging
import logging.config
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from strandly.api import routes
from strandly.core.config import get_settings
from strandly.core.rate_limit import limiter
from strandly.database import create_db_and_tables, get_session, ping
from strandly.engine.catalog import get_catalog, get_knowledge_base
from strandly.schemas import HealthResponse

APP_VERSION = "1.0.0"

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging(debug: bool) -> None:
    """Console logging for the app; SQL echo and httpx request lines only in debug."""
    quiet = "DEBUG" if debug else "WARNING"
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"default": {"format": LOG_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"}},
            "handlers": {"console": {"class": "logging.StreamHandler", "formatter": "default"}},
            "root": {"level": "INFO", "handlers": ["console"]},
            "loggers": {
                "sqlalchemy.engine": {"level": quiet, "handlers": ["console"], "propagate": False},
                "httpx": {"level": quiet},
            },
        }
    )


settings = get_settings()
configure_logging(settings.APP_DEBUG)
logger = logging.getLogger(__name__)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "Content-Security-Policy": "default-src 'none'; frame-ancestors 'none'",
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Run startup / shutdown logic around the application lifetime."""
    logger.info(
        "Starting Strandly backend (env=%s, delivery=%s)", settings.APP_ENV, settings.DELIVERY_BACKEND
    )
    create_db_and_tables()
    get_catalog()
    get_knowledge_base()
    if settings.ENABLE_TEST_ENDPOINTS:
        logger.warning("Mock checkout endpoint /api/v1/test/complete-payment is enabled.")
    yield
    logger.info("Strandly backend shutting down.")


app = FastAPI(
    title="Strandly API",
    version=APP_VERSION,
    description=(
        "Hair-care analysis commerce backend.\n\n"
        "Core features:\n"
        "- **Quiz intake** — stores answers pending checkout\n"
        "- **Hair analysis** — profile, damage score, tiered product picks, confidence\n"
        "- **Report delivery** — emailed once payment completes\n"
    ),
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

app.state.limiter = limiter

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def security_headers(
    request: Request, call_next: Callable[[Request], Awaitable[Response]]
) -> Response:
    response = await call_next(request)
    for header, value in SECURITY_HEADERS.items():
        response.headers.setdefault(header, value)
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit exceeded on %s %s (%s)", request.method, request.url.path, exc.detail
    )
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"detail": f"Too many requests ({exc.detail}). Please try again later."},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Catch-all handler so unhandled exceptions return a clean JSON response
    instead of an HTML traceback.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "An unexpected error occurred. Please try again."},
    )


app.include_router(routes.router, prefix="/api/v1")


@app.get(
    "/",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Liveness probe",
)
def liveness() -> HealthResponse:
    return HealthResponse(
        status="Strandly Backend is Running",
        version=APP_VERSION,
        environment=settings.APP_ENV,
    )


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["Health"],
    summary="Readiness probe (checks the database)",
    responses={503: {"model": HealthResponse}},
)
def readiness(db: Session = Depends(get_session)):
    try:
        ping(db)
    except SQLAlchemyError as exc:
        logger.error("Health check failed: database unreachable (%s)", exc)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=HealthResponse(
                status="degraded",
                version=APP_VERSION,
                environment=settings.APP_ENV,
                database="unreachable",
            ).model_dump(),
        )
    return HealthResponse(
        status="ok",
        version=APP_VERSION,
        environment=settings.APP_ENV,
        database="ok",
    )
