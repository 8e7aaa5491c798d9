"""Product catalogue routes."""

import time
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from ..dependencies import client_ip, get_products
from ..middleware import require_role
from ..models import ProductRequest
from ..ratelimit import product_rate_limit
from ..responses import elapsed_ms, success
from ..services import ProductService

router = APIRouter(prefix="/api/products", tags=["products"])

Products = Annotated[ProductService, Depends(get_products)]
Editor = Annotated[dict[str, Any], Depends(require_role("admin", "staff"))]
Admin = Annotated[dict[str, Any], Depends(require_role("admin"))]


@router.get("")
@product_rate_limit
async def list_products_endpoint(request: Request, service: Products) -> JSONResponse:
    """List products with filters, sorting and pagination.

    Query parameters: category, subcategory, search, colors, fabric_patterns,
    featured, best_seller, new_arrival, sort_by, sort_order, page, limit.
    """
    started = time.perf_counter()
    params = dict(request.query_params)
    logger.info(f"Products request {params or 'no filters'} from {client_ip(request)}")

    result, cached = await service.list_products(params)
    return success(result, cached=cached, response_time=elapsed_ms(started))


@router.get("/{product_id}")
@product_rate_limit
async def get_product_endpoint(request: Request, product_id: str, service: Products) -> JSONResponse:
    started = time.perf_counter()
    product, cached = await service.get_product(product_id)
    return success(product, cached=cached, response_time=elapsed_ms(started))


@router.post("")
@product_rate_limit
async def create_product_endpoint(
    request: Request, payload: ProductRequest, service: Products, user: Editor
) -> JSONResponse:
    started = time.perf_counter()
    product_id = await service.create_product(payload, user, client_ip(request))
    return success(
        {"id": product_id},
        "Product created successfully",
        status.HTTP_201_CREATED,
        response_time=elapsed_ms(started),
    )


@router.put("/{product_id}")
@product_rate_limit
async def update_product_endpoint(
    request: Request, product_id: str, payload: ProductRequest, service: Products, user: Editor
) -> JSONResponse:
    started = time.perf_counter()
    await service.update_product(product_id, payload, user, client_ip(request))
    return success(message="Product updated successfully", response_time=elapsed_ms(started))


@router.delete("/{product_id}")
@product_rate_limit
async def delete_product_endpoint(
    request: Request, product_id: str, service: Products, user: Admin
) -> JSONResponse:
    started = time.perf_counter()
    await service.delete_product(product_id, user, client_ip(request))
    return success(message="Product deleted successfully", response_time=elapsed_ms(started))
