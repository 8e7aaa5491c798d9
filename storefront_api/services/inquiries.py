"""Contact inquiries and customization requests."""

import asyncio
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from loguru import logger

from ..models import ContactRequest, CustomizationRequest
from ..pagination import paginate, row_to_dict
from ..storage import Database
from ..storage.schema import contact_inquiries, customization_requests


class InquiryService:
    """Stores public form submissions and lists them for staff."""

    def __init__(self, database: Database) -> None:
        self.database = database

    async def submit_contact(self, payload: ContactRequest, ip_address: str | None) -> int:
        inquiry_id = await self.database.fetch_val(
            contact_inquiries.insert()
            .values(
                name=payload.name,
                email=payload.email,
                phone=payload.phone or None,
                subject=payload.subject,
                message=payload.message,
                ip_address=ip_address,
                created_at=datetime.now(UTC),
            )
            .returning(contact_inquiries.c.inquiry_id)
        )
        logger.info(f"Contact inquiry {inquiry_id} from {payload.email}")
        return inquiry_id

    async def submit_customization(
        self, payload: CustomizationRequest, ip_address: str | None
    ) -> int:
        request_id = await self.database.fetch_val(
            customization_requests.insert()
            .values(
                name=payload.name,
                email=payload.email,
                phone=payload.phone,
                service_type=payload.service_type,
                description=payload.description,
                budget=payload.budget or None,
                timeline=payload.timeline or None,
                measurements=payload.measurements or None,
                ip_address=ip_address,
                created_at=datetime.now(UTC),
            )
            .returning(customization_requests.c.request_id)
        )
        logger.info(
            f"Customization request {request_id} ({payload.service_type}) from {payload.email}"
        )
        return request_id

    async def list_inquiries(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        rows, pagination = await self._page(contact_inquiries, "inquiry_id", page, limit)
        return {"inquiries": rows, "pagination": pagination}

    async def list_customizations(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        rows, pagination = await self._page(customization_requests, "request_id", page, limit)
        return {"requests": rows, "pagination": pagination}

    async def _page(
        self, table: sa.Table, id_column: str, page: int, limit: int
    ) -> tuple[list[dict[str, Any]], Any]:
        """Newest-first page of ``table`` plus its pagination block."""
        query = (
            sa.select(table)
            .order_by(table.c.created_at.desc(), table.c[id_column].desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        total, rows = await asyncio.gather(
            self.database.fetch_val(sa.select(sa.func.count()).select_from(table)),
            self.database.fetch_all(query),
        )
        return [row_to_dict(row) for row in rows], paginate(page, limit, total or 0)
