"""Pooled database access with timeouts, retries and health reporting."""

import asyncio
import time
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import databases
import sqlalchemy as sa
from loguru import logger
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.schema import CreateIndex, CreateTable

from ..exceptions import (
    DatabaseError,
    DuplicateEntryError,
    ForeignKeyError,
    MissingTableError,
    QueryTimeoutError,
    StorefrontError,
)
from ..retry import (
    FOREIGN_KEY_VIOLATION,
    UNDEFINED_TABLE,
    UNIQUE_VIOLATION,
    connect_retrying,
    query_retrying,
    sqlstate_of,
)
from .schema import metadata

SLOW_QUERY_SECONDS = 1.0
NOTABLE_QUERY_SECONDS = 0.1


def _preview(query: Any, size: int = 50) -> str:
    text = " ".join(str(query).split())
    return text if len(text) <= size else text[:size] + "..."


class Database:
    """PostgreSQL/SQLite access through a ``databases`` connection pool.

    Every query runs under a timeout, transient failures are retried, and
    driver errors are translated into the ``DatabaseError`` family so routes
    can map them onto HTTP status codes.
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_min: int = 5,
        pool_max: int = 20,
        query_timeout: float = 30.0,
        query_retries: int = 2,
        connect_retries: int = 5,
        create_tables: bool = True,
    ):
        """Initialize the pool without connecting.

        Args:
            database_url: SQLAlchemy style URL (postgresql+asyncpg or sqlite+aiosqlite).
            pool_min: Minimum pooled connections (PostgreSQL only).
            pool_max: Maximum pooled connections (PostgreSQL only).
            query_timeout: Seconds before a single query attempt is abandoned.
            query_retries: Extra attempts for transient query failures.
            connect_retries: Extra attempts for the initial connection.
            create_tables: Create missing tables on startup.
        """
        self.url = sa.engine.make_url(database_url)
        self.is_postgres = self.url.get_backend_name() == "postgresql"
        self.dialect = postgresql.dialect() if self.is_postgres else sqlite.dialect()

        options: dict[str, Any] = {}
        if self.is_postgres:
            options = {"min_size": pool_min, "max_size": pool_max}
        self.database = databases.Database(database_url, **options)

        self.pool_min = pool_min
        self.pool_max = pool_max
        self.query_timeout = query_timeout
        self.query_retries = query_retries
        self.connect_retries = connect_retries
        self.create_tables = create_tables

        self.active_queries = 0
        self.query_count = 0
        self.error_count = 0
        self.last_activity = datetime.now(UTC)

    async def startup(self) -> None:
        """Connect (with retries), probe the server and create tables."""
        self._ensure_sqlite_directory()
        logger.info(
            f"Connecting to database {self.url.render_as_string(hide_password=True)} "
            f"(pool {self.pool_min}-{self.pool_max}, timeout {self.query_timeout}s)"
        )

        async for attempt in connect_retrying(self.connect_retries):
            with attempt:
                await self.database.connect()
                await self._probe()

        if self.create_tables:
            await self._create_tables()

    async def shutdown(self, drain_seconds: float = 30.0, poll_interval: float = 1.0) -> None:
        """Wait for in-flight queries (bounded by ``drain_seconds``), then disconnect."""
        deadline = time.monotonic() + drain_seconds
        while self.active_queries > 0 and time.monotonic() < deadline:
            logger.info(f"Waiting for {self.active_queries} active queries to finish...")
            await asyncio.sleep(poll_interval)

        if self.active_queries > 0:
            logger.warning(f"Closing pool with {self.active_queries} queries still running")

        await self.database.disconnect()
        logger.info("Database pool closed")

    async def execute(self, query: Any, values: dict[str, Any] | None = None) -> Any:
        return await self._run("execute", query, values)

    async def fetch_all(self, query: Any, values: dict[str, Any] | None = None) -> list[Any]:
        return await self._run("fetch_all", query, values)

    async def fetch_one(self, query: Any, values: dict[str, Any] | None = None) -> Any | None:
        return await self._run("fetch_one", query, values)

    async def fetch_val(self, query: Any, values: dict[str, Any] | None = None) -> Any:
        return await self._run("fetch_val", query, values)

    async def _run(self, method: str, query: Any, values: dict[str, Any] | None) -> Any:
        self.query_count += 1
        self.active_queries += 1
        start = time.perf_counter()
        try:
            async for attempt in query_retrying(self.query_retries):
                with attempt:
                    result = await self._attempt(method, query, values)
        except Exception as e:
            self.error_count += 1
            logger.error(
                f"Query error: {_preview(query)} | {e} | code={sqlstate_of(e)} | "
                f"{(time.perf_counter() - start) * 1000:.0f}ms | "
                f"{self.active_queries}/{self.pool_max} active"
            )
            if isinstance(e, StorefrontError):
                raise
            raise self._translate(e) from e
        finally:
            self.active_queries -= 1
            self.last_activity = datetime.now(UTC)

        elapsed = time.perf_counter() - start
        if elapsed > SLOW_QUERY_SECONDS:
            logger.warning(f"Slow query detected: {_preview(query)} took {elapsed * 1000:.0f}ms")
        elif elapsed > NOTABLE_QUERY_SECONDS:
            logger.debug(f"Query executed: {_preview(query, 30)} in {elapsed * 1000:.0f}ms")
        return result

    async def _attempt(self, method: str, query: Any, values: dict[str, Any] | None) -> Any:
        call = getattr(self.database, method)
        try:
            return await asyncio.wait_for(call(query, values), timeout=self.query_timeout)
        except asyncio.TimeoutError as e:
            raise QueryTimeoutError() from e

    @staticmethod
    def _translate(exc: Exception) -> DatabaseError:
        code = sqlstate_of(exc)
        if code == UNIQUE_VIOLATION:
            return DuplicateEntryError()
        if code == FOREIGN_KEY_VIOLATION:
            return ForeignKeyError()
        if code == UNDEFINED_TABLE:
            logger.error("Table does not exist. Please run database migrations.")
            return MissingTableError()
        return DatabaseError(f"Database operation failed: {exc}")

    async def _probe(self) -> None:
        if self.is_postgres:
            probe = "SELECT NOW() AS now, version() AS version, current_database() AS name"
        else:
            probe = "SELECT CURRENT_TIMESTAMP AS now, sqlite_version() AS version, 'main' AS name"
        row = await asyncio.wait_for(self.database.fetch_one(probe), timeout=5)
        if row is not None:
            logger.info(
                f"Database connected: {row['name']} at {row['now']} "
                f"(version {str(row['version']).split(' ')[0]})"
            )

    async def _create_tables(self) -> None:
        for table in metadata.sorted_tables:
            ddl = CreateTable(table, if_not_exists=True).compile(dialect=self.dialect)
            await self.database.execute(str(ddl))
            for index in table.indexes:
                ddl = CreateIndex(index, if_not_exists=True).compile(dialect=self.dialect)
                await self.database.execute(str(ddl))
        logger.info(f"Ensured {len(metadata.sorted_tables)} tables exist")

    def _ensure_sqlite_directory(self) -> None:
        if self.is_postgres:
            return
        path = self.url.database
        if path and path != ":memory:" and not path.startswith("file:"):
            Path(path).parent.mkdir(parents=True, exist_ok=True)

    def pool_stats(self) -> dict[str, Any]:
        return {
            "min": self.pool_min,
            "max": self.pool_max,
            "active": self.active_queries,
            "connected": self.database.is_connected,
        }

    def query_stats(self) -> dict[str, Any]:
        return {
            "total_queries": self.query_count,
            "errors": self.error_count,
            "last_activity": self.last_activity.isoformat(),
        }

    async def health_check(self) -> dict[str, Any]:
        """Report database health. Never raises."""
        start = time.perf_counter()
        try:
            await self.fetch_val("SELECT 1")
        except Exception as e:  # noqa: BLE001
            return {
                "status": "unhealthy",
                "error": str(e),
                "code": sqlstate_of(e.__cause__ or e),
                "pool": self.pool_stats(),
                "stats": self.query_stats(),
            }
        return {
            "status": "healthy",
            "response_time": f"{(time.perf_counter() - start) * 1000:.0f}ms",
            "pool": self.pool_stats(),
            "stats": self.query_stats(),
        }

    async def maintain(self) -> None:
        """Log pool statistics and warm an idle pool."""
        error_rate = (
            f"{self.error_count / self.query_count * 100:.2f}%" if self.query_count else "0%"
        )
        logger.info(
            f"Pool stats: {self.pool_stats()} queries={self.query_count} "
            f"errors={self.error_count} error_rate={error_rate}"
        )

        if self.active_queries == 0:
            try:
                await self.fetch_val("SELECT 1")
                logger.debug("Pool warmed up")
            except DatabaseError as e:
                logger.error(f"Pool warmup failed: {e}")

    async def run_maintenance(self, interval: float) -> None:
        """Periodic health check followed by maintenance; runs until cancelled."""
        while True:
            await asyncio.sleep(interval)
            health = await self.health_check()
            idle_for = (datetime.now(UTC) - self.last_activity).total_seconds()
            logger.info(
                f"Database health check: {health['status']} pool={health['pool']} "
                f"errors={self.error_count}/{self.query_count} idle_for={idle_for:.0f}s"
            )
            if health["status"] == "healthy":
                await self.maintain()
