"""Retry logic for database access using tenacity."""

from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_incrementing,
)

from .exceptions import QueryTimeoutError

# admin_shutdown, crash_shutdown, cannot_connect_now, connection_exception,
# connection_does_not_exist, connection_failure, too_many_connections
TRANSIENT_SQLSTATES = frozenset({"57P01", "57P02", "57P03", "08000", "08003", "08006", "53300"})

UNIQUE_VIOLATION = "23505"
FOREIGN_KEY_VIOLATION = "23503"
UNDEFINED_TABLE = "42P01"

# SQLite reports constraint failures by message only
SQLITE_MESSAGE_CODES = (
    ("UNIQUE constraint failed", UNIQUE_VIOLATION),
    ("FOREIGN KEY constraint failed", FOREIGN_KEY_VIOLATION),
    ("no such table", UNDEFINED_TABLE),
)


def sqlstate_of(exc: BaseException) -> str | None:
    """Extract a PostgreSQL SQLSTATE code from a driver exception.

    asyncpg exposes ``sqlstate``, psycopg exposes ``pgcode``. SQLite errors
    are mapped from their message onto the matching PostgreSQL code.
    """
    for attr in ("sqlstate", "pgcode"):
        code = getattr(exc, attr, None)
        if isinstance(code, str) and code:
            return code

    message = str(exc)
    for fragment, code in SQLITE_MESSAGE_CODES:
        if fragment in message:
            return code
    return None


def is_transient(exc: BaseException) -> bool:
    """Whether a failed query is worth retrying."""
    if isinstance(exc, (QueryTimeoutError, TimeoutError, ConnectionError, OSError)):
        return True
    if sqlstate_of(exc) in TRANSIENT_SQLSTATES:
        return True
    return "database is locked" in str(exc)


def _log_retry(label: str):
    def before_sleep(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        delay = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"{label} attempt {retry_state.attempt_number} failed: {error}. "
            f"Retrying in {delay:.1f}s"
        )

    return before_sleep


def query_retrying(retries: int) -> AsyncRetrying:
    """Retry policy for individual queries.

    ``retries`` is the number of extra attempts after the first one. Delays
    start at 0.5s and double up to 2s.
    """
    return AsyncRetrying(
        retry=retry_if_exception(is_transient),
        stop=stop_after_attempt(retries + 1),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=2),
        before_sleep=_log_retry("Query"),
        reraise=True,
    )


def connect_retrying(retries: int) -> AsyncRetrying:
    """Retry policy for the initial connection: 3s, 6s, 9s ... capped at 15s."""
    return AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_incrementing(start=3, increment=3, max=15),
        before_sleep=_log_retry("Database connection"),
        reraise=True,
    )
