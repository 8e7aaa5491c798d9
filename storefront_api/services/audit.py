"""Append-only audit trail of user actions."""

import asyncio
import json
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from loguru import logger

from ..pagination import paginate, row_to_dict
from ..storage import Database
from ..storage.schema import audit_logs, users


def _decode_details(raw: str | None) -> Any:
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return raw


class AuditLog:
    """Writes and lists ``audit_logs`` rows."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def record(
        self,
        user_id: int | None,
        action: str,
        ip_address: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Append one audit entry; ``details`` is stored JSON-encoded."""
        query = audit_logs.insert().values(
            user_id=user_id,
            action=action,
            timestamp=datetime.now(UTC),
            ip_address=ip_address,
            details=json.dumps(details, default=str) if details is not None else None,
        )
        await self.database.execute(query)
        logger.debug(f"Audit {action} by user {user_id} from {ip_address}")

    async def list_entries(
        self,
        *,
        page: int = 1,
        limit: int = 50,
        user_id: int | None = None,
        action: str | None = None,
    ) -> dict[str, Any]:
        """List entries newest first, joined with the acting user's name.

        Args:
            page: 1-based page number.
            limit: Page size.
            user_id: Only entries by this user.
            action: Only entries with this action name.

        Returns:
            Dictionary with ``logs`` and ``pagination``.
        """
        conditions = []
        if user_id is not None:
            conditions.append(audit_logs.c.user_id == user_id)
        if action:
            conditions.append(audit_logs.c.action == action)

        joined = audit_logs.outerjoin(users, audit_logs.c.user_id == users.c.user_id)
        count_query = sa.select(sa.func.count()).select_from(joined).where(*conditions)
        logs_query = (
            sa.select(
                audit_logs,
                users.c.first_name,
                users.c.last_name,
                users.c.email,
            )
            .select_from(joined)
            .where(*conditions)
            .order_by(audit_logs.c.timestamp.desc(), audit_logs.c.log_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )

        total, rows = await asyncio.gather(
            self.database.fetch_val(count_query),
            self.database.fetch_all(logs_query),
        )

        logs = []
        for row in rows:
            entry = row_to_dict(row)
            entry["details"] = _decode_details(entry["details"])
            logs.append(entry)

        return {"logs": logs, "pagination": paginate(page, limit, total or 0)}
