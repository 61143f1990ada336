"""
Rate Limiting for Agile Flow API
================================
slowapi with in-memory storage, keyed by client IP.

Only the unauthenticated auth endpoints are limited:
- /auth/register: RATE_LIMIT_REGISTER (3/minute)
- /auth/login: RATE_LIMIT_LOGIN (5/minute)
"""

from slowapi import Limiter
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from fastapi import Request
from fastapi.responses import JSONResponse

from agileflow.core.config import settings
from agileflow.core.logging_config import logger


limiter = Limiter(
    key_func=get_remote_address,
    enabled=settings.RATE_LIMIT_ENABLED,
    strategy="fixed-window",
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded):
    """Return the usual error envelope with a Retry-After hint"""
    logger.warning(
        f"[RateLimit] Exceeded for {get_remote_address(request)}: {exc.detail}",
        extra={"event_type": "rate_limit", "http_path": request.url.path},
    )
    return JSONResponse(
        status_code=429,
        content={"error": "Too many requests. Please slow down."},
        headers={"Retry-After": "60"},
    )
