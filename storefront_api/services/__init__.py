"""Business logic services."""

from .accounts import AccountService
from .audit import AuditLog
from .inquiries import InquiryService
from .products import ProductService

__all__ = ["AccountService", "AuditLog", "InquiryService", "ProductService"]
