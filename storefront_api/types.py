"""Type definitions for the Storefront API."""

from typing import Any

from typing_extensions import TypedDict


class Pagination(TypedDict):
    """Pagination block attached to every listing."""

    page: int
    limit: int
    total: int
    pages: int


class PriceRange(TypedDict):
    min: float
    max: float


class ProductRecord(TypedDict, total=False):
    """Product as returned to clients, with decoded arrays."""

    id: str
    name: str
    price: float
    price_min: float | None
    price_max: float | None
    price_range: PriceRange
    category: str
    subcategory: str
    description: str
    composition: str
    fabric_pattern: str | None
    images: list[str]
    colors: list[str]
    featured: bool
    best_seller: bool
    new_arrival: bool
    created_at: Any
    updated_at: Any


class ProductPage(TypedDict):
    products: list[ProductRecord]
    pagination: Pagination


class PublicUser(TypedDict):
    """User fields that are safe to expose (never the password hash)."""

    user_id: int
    first_name: str
    last_name: str
    email: str
    phone: str | None
    role: str
    is_active: bool


class AuthResult(TypedDict):
    user: PublicUser
    token: str


class TokenClaims(TypedDict):
    sub: str
    email: str
    role: str
    iat: int
    exp: int
