"""Rate limiting with slowapi, keyed by client address and user agent."""

from fastapi import Request, status
from fastapi.responses import JSONResponse
from loguru import logger
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address

from .config import settings
from .responses import failure

AUTH_LIMIT_MESSAGE = "Too many authentication attempts. Please try again later."
PRODUCT_LIMIT_MESSAGE = "Too many product requests. Please slow down."


def rate_limit_key(request: Request) -> str:
    return f"{get_remote_address(request)}-{request.headers.get('User-Agent', 'unknown')}"


def auth_limit() -> str:
    return settings.auth_rate_limit


def product_limit() -> str:
    return settings.product_rate_limit


def get_limiter() -> Limiter:
    """Get or create rate limiter."""
    return Limiter(key_func=rate_limit_key, storage_uri=settings.limiter_storage_uri)


limiter = get_limiter()

auth_rate_limit = limiter.shared_limit(auth_limit, scope="auth", error_message=AUTH_LIMIT_MESSAGE)
product_rate_limit = limiter.shared_limit(
    product_limit, scope="products", error_message=PRODUCT_LIMIT_MESSAGE
)


async def rate_limit_exceeded_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Render 429 in the standard envelope with ``retry_after`` in seconds."""
    logger.warning(f"Rate limit exceeded for {rate_limit_key(request)} on {request.url.path}")
    retry_after = exc.limit.limit.get_expiry()
    message = exc.limit.error_message or "Too many requests. Please wait a moment before trying again."
    return failure(
        message,
        status.HTTP_429_TOO_MANY_REQUESTS,
        headers={"Retry-After": str(retry_after)},
        retry_after=retry_after,
    )
