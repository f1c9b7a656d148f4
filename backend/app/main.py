import logging
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_fastapi_instrumentator import Instrumentator
from pydantic import BaseModel
from slowapi.errors import RateLimitExceeded
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.v1 import api_router
from app.core.config import settings
from app.core.exceptions import HSEError
from app.core.logging_config import RequestLoggingMiddleware, setup_logging
from app.core.rate_limiter import limiter, rate_limit_exceeded_handler
from app.db.session import check_db_connection, engine
from app.services.realtime import get_broadcaster

# JSON logs in production, coloured console output in development
setup_logging()
logger = logging.getLogger("hse")

VERSION = "1.0.0"


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Adds the standard hardening headers to every response."""

    async def dispatch(self, request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        response.headers["Permissions-Policy"] = "geolocation=(), microphone=(), camera=()"
        if "text/html" in response.headers.get("content-type", ""):
            response.headers["Content-Security-Policy"] = (
                "default-src 'self'; "
                "script-src 'self'; "
                "style-src 'self' 'unsafe-inline'; "
                "img-src 'self' data:; "
                "connect-src 'self'"
            )
        return response


class ErrorResponse(BaseModel):
    """Standardized error response format."""
    error: str
    detail: str | None = None
    code: str | None = None
    redirect: str | None = None
    details: dict | None = None
    timestamp: str
    path: str | None = None


class HealthResponse(BaseModel):
    status: str
    service: str
    version: str
    environment: str
    checks: dict[str, bool]


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("%s starting (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)
    try:
        yield
    finally:
        logger.info("Shutting down: closing realtime subscriptions and database connections")
        get_broadcaster().close_all()
        await engine.dispose()


app = FastAPI(
    title=f"{settings.PROJECT_NAME} API",
    description="Occupational health and safety management for companies",
    version=VERSION,
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

_default_dev_origins = [
    "http://localhost:5173",
    "http://localhost:3000",
    "http://127.0.0.1:5173",
    "http://127.0.0.1:3000",
]
cors_origins = settings.ALLOWED_ORIGINS or _default_dev_origins


def get_cors_headers(request: Request) -> dict:
    """Error responses bypass CORSMiddleware, so they carry the headers themselves."""
    origin = request.headers.get("origin", "")
    if origin in cors_origins:
        return {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Credentials": "true",
        }
    return {}


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@app.exception_handler(HSEError)
async def hse_exception_handler(request: Request, exc: HSEError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    else:
        logger.info("%s on %s %s: %s", exc.code, request.method, request.url.path, exc.message)
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == status.HTTP_401_UNAUTHORIZED else {}
    return JSONResponse(
        status_code=exc.status_code,
        content=ErrorResponse(
            error=exc.message,
            detail=exc.message,
            code=exc.code,
            redirect=getattr(exc, "redirect", None),
            details=exc.details or None,
            timestamp=_now(),
            path=request.url.path,
        ).model_dump(exclude_none=True),
        headers=headers,
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """
    Last-resort handler. In production the response only carries a
    reference id; the full traceback goes to the log.
    """
    error_id = datetime.now(timezone.utc).strftime("%Y%m%d%H%M%S%f")
    logger.error(
        "Unhandled exception [%s] on %s %s: %s\n%s",
        error_id, request.method, request.url.path, exc, traceback.format_exc(),
    )
    headers = get_cors_headers(request)

    if settings.ENVIRONMENT.lower() == "production":
        content = ErrorResponse(
            error="Internal server error",
            detail=f"An unexpected error occurred. Reference ID: {error_id}",
            code="internal_error",
            timestamp=_now(),
            path=request.url.path,
        )
    else:
        content = ErrorResponse(
            error=exc.__class__.__name__,
            detail=str(exc),
            code="internal_error",
            timestamp=_now(),
            path=request.url.path,
        )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=content.model_dump(exclude_none=True),
        headers=headers,
    )


# Exact origins are required when credentials are allowed
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router, prefix=settings.API_V1_STR)

# Exposes /metrics for Prometheus
instrumentator = Instrumentator(
    should_group_status_codes=False,
    should_ignore_untemplated=True,
    should_respect_env_var=True,
    should_instrument_requests_inprogress=True,
    excluded_handlers=["/health", "/metrics"],
    inprogress_name="hse_inprogress_requests",
    inprogress_labels=True,
)
instrumentator.instrument(app).expose(app, include_in_schema=False)


@app.get("/health", response_model=HealthResponse)
async def health_check():
    """Returns 503 when the database is unreachable."""
    db_healthy = await check_db_connection()
    response = HealthResponse(
        status="healthy" if db_healthy else "unhealthy",
        service="hse-portal-backend",
        version=VERSION,
        environment=settings.ENVIRONMENT,
        checks={"database": db_healthy},
    )
    if not db_healthy:
        logger.warning("Health check failed: database unreachable")
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=response.model_dump())
    return response


@app.get("/")
async def root():
    return {"message": f"Welcome to the {settings.PROJECT_NAME} API"}
