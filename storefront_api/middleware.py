"""Request tracking middleware and JWT authentication dependencies."""

import asyncio
import uuid
from typing import Annotated, Any

from fastapi import Depends, Header, Request, status
from loguru import logger

from .config import settings
from .dependencies import get_accounts
from .exceptions import AuthenticationError, AuthorizationError
from .responses import failure
from .security import decode_token
from .services import AccountService


async def add_request_id(request: Request, call_next):
    """Add request ID to context for tracking.

    Args:
        request: Incoming FastAPI request.
        call_next: Next middleware or handler in chain.

    Returns:
        Response with X-Request-ID header.

    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id

    with logger.contextualize(request_id=request_id):
        logger.debug(
            "Request started",
            method=request.method,
            path=request.url.path,
            client=request.client.host if request.client else None,
        )

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        logger.debug(
            "Request completed",
            status_code=response.status_code,
        )

        return response


async def enforce_request_timeout(request: Request, call_next):
    """Answer 408 when a request runs longer than ``request_timeout_seconds``."""
    try:
        return await asyncio.wait_for(call_next(request), timeout=settings.request_timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning(f"Request timeout: {request.method} {request.url.path}")
        return failure("Request timeout. Please try again.", status.HTTP_408_REQUEST_TIMEOUT)


async def get_current_user(
    request: Request,
    accounts: Annotated[AccountService, Depends(get_accounts)],
    authorization: Annotated[str | None, Header()] = None,
) -> dict[str, Any]:
    """Resolve the Bearer token to an active user.

    Args:
        request: Incoming request; the user is stored on ``request.state.user``.
        accounts: Account service used to reload the user.
        authorization: Authorization header value (Bearer token).

    Returns:
        The user's public fields.

    Raises:
        AuthenticationError: If the token is missing, invalid or expired, or the
            user no longer exists or is inactive.
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthenticationError("Access token required")

    claims = decode_token(authorization.removeprefix("Bearer ").strip())
    try:
        user_id = int(claims["sub"])
    except (TypeError, ValueError) as e:
        raise AuthenticationError("Invalid or expired token") from e

    user = await accounts.get_user(user_id)
    if user is None or not user["is_active"]:
        raise AuthenticationError("User not found or inactive")

    request.state.user = user
    return user


CurrentUser = Annotated[dict[str, Any], Depends(get_current_user)]


def require_role(*roles: str):
    """Dependency factory allowing only users whose role is in ``roles``."""

    async def check_role(user: CurrentUser) -> dict[str, Any]:
        if user["role"] not in roles:
            logger.warning(f"User {user['email']} ({user['role']}) denied, requires {roles}")
            raise AuthorizationError("Insufficient permissions")
        return user

    return check_role
