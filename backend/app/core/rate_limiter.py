"""
Request throttling with SlowAPI (in-process storage).
"""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from starlette.responses import JSONResponse

from app.core.config import settings

logger = logging.getLogger("hse.rate_limiter")


def get_real_client_ip(request: Request) -> str:
    """Client IP, honouring X-Forwarded-For / X-Real-IP set by a reverse proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return get_remote_address(request)


limiter = Limiter(
    key_func=get_real_client_ip,
    default_limits=["1000/hour"],
    strategy="fixed-window",
    headers_enabled=False,
)


class RateLimits:
    AUTH_LOGIN = settings.RATE_LIMIT_LOGIN
    AUTH_REGISTER = "5/minute"
    FILE_UPLOAD = "30/minute"


def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning(
        "Rate limit exceeded for %s on %s %s",
        get_real_client_ip(request), request.method, request.url.path,
    )
    retry_after = getattr(exc, "retry_after", 60)
    return JSONResponse(
        status_code=429,
        content={
            "error": "Rate limit exceeded",
            "detail": f"Too many requests. Please retry after {retry_after} seconds.",
            "code": "rate_limited",
        },
        headers={"Retry-After": str(retry_after)},
    )
