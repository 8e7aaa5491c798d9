"""JSON envelope helpers: ``{success, message, data, errors}``."""

import time
from typing import Any

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse


def success(
    data: Any = None,
    message: str | None = None,
    status_code: int = status.HTTP_200_OK,
    **extra: Any,
) -> JSONResponse:
    """Build a successful envelope.

    Args:
        data: Payload placed under ``data`` (omitted when None).
        message: Optional human readable message.
        status_code: HTTP status code.
        **extra: Additional top-level keys such as ``cached`` or ``response_time``.

    Returns:
        JSONResponse with the envelope body.
    """
    content: dict[str, Any] = {"success": True}
    if message is not None:
        content["message"] = message
    if data is not None:
        content["data"] = data
    content.update(extra)
    return JSONResponse(status_code=status_code, content=jsonable_encoder(content))


def failure(
    message: str,
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    errors: list[Any] | None = None,
    headers: dict[str, str] | None = None,
    **extra: Any,
) -> JSONResponse:
    """Build an error envelope."""
    content: dict[str, Any] = {"success": False, "message": message}
    if errors:
        content["errors"] = errors
    content.update(extra)
    return JSONResponse(
        status_code=status_code, content=jsonable_encoder(content), headers=headers
    )


def elapsed_ms(started: float) -> str:
    """Milliseconds since a ``time.perf_counter()`` reading, as ``"<n>ms"``."""
    return f"{(time.perf_counter() - started) * 1000:.0f}ms"
