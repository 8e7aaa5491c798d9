"""Service container populated by the application lifespan."""

from dataclasses import dataclass

from fastapi import Request

from .config import settings
from .services import AccountService, AuditLog, InquiryService, ProductService
from .storage import Database, TTLCache


@dataclass
class Services:
    """Long-lived components shared by every request."""

    database: Database
    cache: TTLCache
    audit: AuditLog
    accounts: AccountService
    products: ProductService
    inquiries: InquiryService

    @classmethod
    def build(cls, database: Database, cache: TTLCache) -> "Services":
        audit = AuditLog(database)
        return cls(
            database=database,
            cache=cache,
            audit=audit,
            accounts=AccountService(database, audit),
            products=ProductService(
                database, cache, audit, read_timeout=settings.product_read_timeout_seconds
            ),
            inquiries=InquiryService(database),
        )


_services: Services | None = None


def set_services(services: Services | None) -> None:
    global _services
    _services = services


def get_services() -> Services:
    """Get the service container singleton."""
    if _services is None:
        raise RuntimeError("Service not initialized")
    return _services


def get_accounts() -> AccountService:
    return get_services().accounts


def get_products() -> ProductService:
    return get_services().products


def get_inquiries() -> InquiryService:
    return get_services().inquiries


def get_audit() -> AuditLog:
    return get_services().audit


def client_ip(request: Request) -> str | None:
    """Client address, preferring the first proxy-forwarded hop."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else None
