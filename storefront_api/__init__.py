"""Storefront API - storefront and admin backend for a clothing retailer."""

from .api import app, create_app
from .services import AccountService, AuditLog, InquiryService, ProductService
from .storage import Database, TTLCache

__version__ = "1.0.0"

__all__ = [
    "AccountService",
    "AuditLog",
    "Database",
    "InquiryService",
    "ProductService",
    "TTLCache",
    "app",
    "create_app",
]
