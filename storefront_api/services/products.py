"""Product catalogue: filtered listing, lookups and admin mutations."""

import asyncio
import json
import re
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

import sqlalchemy as sa
from loguru import logger
from sqlalchemy.sql.expression import ColumnElement, UnaryExpression

from ..exceptions import ConflictError, NotFoundError, QueryTimeoutError
from ..models import ProductRequest
from ..pagination import page_bounds, paginate, row_to_dict
from ..storage import Database, TTLCache, product_key, product_list_key
from ..storage.schema import products
from ..types import ProductPage, ProductRecord
from .audit import AuditLog

SORT_FIELDS = ("name", "price", "created_at", "updated_at")
FLAG_FILTERS = ("featured", "best_seller", "new_arrival")
FILTER_PARAMS = ("category", "subcategory", "search", "colors", "fabric_patterns", *FLAG_FILTERS)

ID_PREFIX = "FK"
LEADING_INT = re.compile(r"\s*([+-]?\d+)")


def split_list(value: Any) -> list[str]:
    """Split a comma separated query value, dropping blanks."""
    if not value:
        return []
    return [part.strip() for part in str(value).split(",") if part.strip()]


def is_true(value: Any) -> bool:
    return value is True or value == "true"


def build_filters(params: Mapping[str, Any]) -> list[ColumnElement[bool]]:
    """Translate listing query parameters into WHERE conditions (AND-ed by the caller).

    Args:
        params: Raw query parameters.

    Returns:
        List of SQLAlchemy boolean expressions.
    """
    conditions: list[ColumnElement[bool]] = []

    category = params.get("category") or "all"
    if category != "all":
        conditions.append(products.c.category == category)

    subcategory = params.get("subcategory") or "all"
    if subcategory != "all":
        conditions.append(products.c.subcategory == subcategory)

    search = str(params.get("search") or "").strip()
    if search:
        term = f"%{search}%"
        conditions.append(
            sa.or_(
                products.c.name.ilike(term),
                products.c.description.ilike(term),
                products.c.composition.ilike(term),
            )
        )

    colors = split_list(params.get("colors"))
    if colors:
        # colors is a JSON array stored as text, so match the quoted element
        conditions.append(sa.or_(*(products.c.colors.ilike(f'%"{color}"%') for color in colors)))

    patterns = split_list(params.get("fabric_patterns"))
    if patterns:
        conditions.append(sa.or_(*(products.c.fabric_pattern == pattern for pattern in patterns)))

    for flag in FLAG_FILTERS:
        if is_true(params.get(flag)):
            conditions.append(products.c[flag] == sa.true())

    return conditions


def sort_clause(sort_by: Any, sort_order: Any) -> UnaryExpression:
    field = sort_by if sort_by in SORT_FIELDS else "created_at"
    column = products.c[field]
    return column.asc() if str(sort_order or "").upper() == "ASC" else column.desc()


def listing_params(params: Mapping[str, Any]) -> dict[str, Any]:
    """Normalised parameters: the filters given plus sort and page bounds."""
    page, limit = page_bounds(params.get("page"), params.get("limit"))
    normalised = {key: params[key] for key in FILTER_PARAMS if params.get(key) not in (None, "")}
    sort_by = params.get("sort_by")
    normalised["sort_by"] = sort_by if sort_by in SORT_FIELDS else "created_at"
    ascending = str(params.get("sort_order") or "").upper() == "ASC"
    normalised["sort_order"] = "ASC" if ascending else "DESC"
    normalised["page"] = page
    normalised["limit"] = limit
    return normalised


def decode_list(value: Any, allow_data_uri: bool = False) -> list[Any]:
    """Decode a JSON-array column, tolerating plain strings and pre-decoded lists."""
    if value is None or value == "":
        return []
    if isinstance(value, list):
        return value
    if not isinstance(value, str):
        return [value]
    if allow_data_uri and value.startswith("data:image"):
        return [value]
    if value.startswith(("[", "{")):
        try:
            decoded = json.loads(value)
        except ValueError:
            logger.warning("Failed to decode JSON array column, using raw value")
            return [value]
        return decoded if isinstance(decoded, list) else [decoded]
    return [value]


def _as_float(value: Any) -> float | None:
    return float(value) if value is not None else None


def format_product(row: Mapping[str, Any]) -> ProductRecord:
    """Shape a ``products`` row for clients."""
    product: dict[str, Any] = dict(row)
    product["images"] = decode_list(row.get("images"), allow_data_uri=True)
    product["colors"] = decode_list(row.get("colors"))
    product["price"] = _as_float(row.get("price")) or 0.0
    product["price_min"] = _as_float(row.get("price_min"))
    product["price_max"] = _as_float(row.get("price_max"))
    for flag in FLAG_FILTERS:
        product[flag] = bool(row.get(flag))

    if product["price_min"] and product["price_max"]:
        product["price_range"] = {"min": product["price_min"], "max": product["price_max"]}
    return product  # type: ignore[return-value]


def product_code_after(last_id: str | None) -> str:
    """Next code after ``last_id``: FK012 -> FK013, unparseable -> FK001."""
    if not last_id:
        return f"{ID_PREFIX}001"
    match = LEADING_INT.match(last_id.replace(ID_PREFIX, "", 1))
    number = int(match.group(1)) if match else 0
    return f"{ID_PREFIX}{number + 1:03d}"


def _encode_list(values: list[str]) -> str:
    return json.dumps(values, ensure_ascii=False)


class ProductService:
    """Catalogue reads (cached) and mutations (audited, cache-clearing)."""

    def __init__(
        self,
        database: Database,
        cache: TTLCache,
        audit: AuditLog,
        read_timeout: float = 10.0,
    ) -> None:
        self.database = database
        self.cache = cache
        self.audit = audit
        self.read_timeout = read_timeout

    async def list_products(self, params: Mapping[str, Any]) -> tuple[ProductPage, bool]:
        """Filtered, sorted, paginated listing.

        Returns:
            Tuple of (page of products, whether it came from the cache).

        Raises:
            QueryTimeoutError: When the count or page query times out.
        """
        normalised = listing_params(params)
        key = product_list_key(normalised)
        cached = self.cache.get(key)
        if cached is not None:
            logger.debug(f"Cache hit for product listing ({len(cached['products'])} products)")
            return cached, True

        conditions = build_filters(normalised)
        page, limit = normalised["page"], normalised["limit"]
        count_query = sa.select(sa.func.count()).select_from(products).where(*conditions)
        page_query = (
            sa.select(products)
            .where(*conditions)
            .order_by(sort_clause(normalised["sort_by"], normalised["sort_order"]), products.c.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )

        try:
            total, rows = await asyncio.wait_for(
                asyncio.gather(
                    self.database.fetch_val(count_query),
                    self.database.fetch_all(page_query),
                ),
                timeout=self.read_timeout,
            )
        except (QueryTimeoutError, asyncio.TimeoutError) as e:
            raise QueryTimeoutError("Request timeout. Please try again with fewer filters.") from e

        result: ProductPage = {
            "products": [format_product(row_to_dict(row)) for row in rows],
            "pagination": paginate(page, limit, total or 0),
        }
        self.cache.set(key, result)
        logger.info(f"Products fetched: {len(result['products'])} of {total}")
        return result, False

    async def get_product(self, product_id: str) -> tuple[ProductRecord, bool]:
        """Single product by id.

        Raises:
            NotFoundError: If no product has the id.
        """
        key = product_key(product_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached, True

        try:
            row = await asyncio.wait_for(
                self.database.fetch_one(sa.select(products).where(products.c.id == product_id)),
                timeout=self.read_timeout,
            )
        except (QueryTimeoutError, asyncio.TimeoutError) as e:
            raise QueryTimeoutError("Request timeout. Please try again.") from e

        if row is None:
            raise NotFoundError("Product not found")

        product = format_product(row_to_dict(row))
        self.cache.set(key, product)
        return product, False

    async def exists(self, product_id: str) -> bool:
        found = await self.database.fetch_val(
            sa.select(products.c.id).where(products.c.id == product_id)
        )
        return found is not None

    async def next_product_id(self) -> str:
        """Derive the next free code from the most recently created product."""
        latest = await self.database.fetch_val(
            sa.select(products.c.id).order_by(products.c.created_at.desc()).limit(1)
        )
        candidate = product_code_after(latest)
        while await self.exists(candidate):
            candidate = product_code_after(candidate)
        return candidate

    async def create_product(
        self, payload: ProductRequest, actor: Mapping[str, Any], ip_address: str | None
    ) -> str:
        """Insert a product and return its id.

        Raises:
            ConflictError: If an explicit id is already taken.
        """
        if payload.id:
            if await self.exists(payload.id):
                raise ConflictError("Product ID already exists")
            product_id = payload.id
        else:
            product_id = await self.next_product_id()

        now = datetime.now(UTC)
        await self.database.execute(
            products.insert().values(
                id=product_id,
                **self._columns(payload),
                created_at=now,
                updated_at=now,
            )
        )
        await self.audit.record(
            actor["user_id"],
            "create_product",
            ip_address,
            {"product_id": product_id, "name": payload.name},
        )
        self.cache.clear()
        logger.info(f"Product {product_id} created by {actor['email']}")
        return product_id

    async def update_product(
        self,
        product_id: str,
        payload: ProductRequest,
        actor: Mapping[str, Any],
        ip_address: str | None,
    ) -> None:
        """Replace every editable column of an existing product.

        Raises:
            NotFoundError: If the product does not exist.
        """
        if not await self.exists(product_id):
            raise NotFoundError("Product not found")

        await self.database.execute(
            products.update()
            .where(products.c.id == product_id)
            .values(**self._columns(payload), updated_at=datetime.now(UTC))
        )
        await self.audit.record(
            actor["user_id"],
            "update_product",
            ip_address,
            {"product_id": product_id, "name": payload.name},
        )
        self.cache.clear()
        logger.info(f"Product {product_id} updated by {actor['email']}")

    async def delete_product(
        self, product_id: str, actor: Mapping[str, Any], ip_address: str | None
    ) -> None:
        """Delete a product.

        Raises:
            NotFoundError: If the product does not exist.
        """
        name = await self.database.fetch_val(
            sa.select(products.c.name).where(products.c.id == product_id)
        )
        if name is None:
            raise NotFoundError("Product not found")

        await self.database.execute(products.delete().where(products.c.id == product_id))
        await self.audit.record(
            actor["user_id"],
            "delete_product",
            ip_address,
            {"product_id": product_id, "name": name},
        )
        self.cache.clear()
        logger.info(f"Product {product_id} deleted by {actor['email']}")

    @staticmethod
    def _columns(payload: ProductRequest) -> dict[str, Any]:
        return {
            "name": payload.name,
            "price": payload.price,
            "price_min": payload.price_min or None,
            "price_max": payload.price_max or None,
            "category": payload.category,
            "subcategory": payload.subcategory,
            "description": payload.description,
            "composition": payload.composition,
            "fabric_pattern": payload.fabric_pattern or None,
            "images": _encode_list(payload.images),
            "colors": _encode_list(payload.colors),
            "featured": payload.featured,
            "best_seller": payload.best_seller,
            "new_arrival": payload.new_arrival,
        }
