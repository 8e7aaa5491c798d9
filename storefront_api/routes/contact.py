"""Contact form and customization request routes."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends, Query, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from ..dependencies import client_ip, get_inquiries
from ..middleware import require_role
from ..models import ContactRequest, CustomizationRequest
from ..pagination import page_bounds
from ..responses import success
from ..services import InquiryService

router = APIRouter(prefix="/api/contact", tags=["contact"])

Inquiries = Annotated[InquiryService, Depends(get_inquiries)]
Staff = Annotated[dict[str, Any], Depends(require_role("admin", "staff"))]


@router.post("/contact")
async def contact_endpoint(
    request: Request, payload: ContactRequest, service: Inquiries
) -> JSONResponse:
    logger.info(f"Contact form submission from {client_ip(request)}")
    inquiry_id = await service.submit_contact(payload, client_ip(request))
    return success(
        {"inquiry_id": inquiry_id},
        "Contact inquiry submitted successfully",
        status.HTTP_201_CREATED,
    )


@router.post("/customization")
async def customization_endpoint(
    request: Request, payload: CustomizationRequest, service: Inquiries
) -> JSONResponse:
    logger.info(f"Customization request ({payload.service_type}) from {client_ip(request)}")
    request_id = await service.submit_customization(payload, client_ip(request))
    return success(
        {"request_id": request_id},
        "Customization request submitted successfully",
        status.HTTP_201_CREATED,
    )


@router.get("/inquiries")
async def inquiries_endpoint(
    service: Inquiries,
    user: Staff,
    page: str | None = Query(None),
    limit: str | None = Query(None),
) -> JSONResponse:
    page_num, limit_num = page_bounds(page, limit)
    return success(await service.list_inquiries(page_num, limit_num))


@router.get("/customization-requests")
async def customization_requests_endpoint(
    service: Inquiries,
    user: Staff,
    page: str | None = Query(None),
    limit: str | None = Query(None),
) -> JSONResponse:
    page_num, limit_num = page_bounds(page, limit)
    return success(await service.list_customizations(page_num, limit_num))
