"""User administration routes."""

from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, Query, Request
from fastapi.responses import JSONResponse

from ..dependencies import client_ip, get_accounts, get_audit
from ..exceptions import ValidationError
from ..middleware import require_role
from ..pagination import page_bounds
from ..responses import success
from ..services import AccountService, AuditLog

router = APIRouter(prefix="/api/users", tags=["users"])

Accounts = Annotated[AccountService, Depends(get_accounts)]
Staff = Annotated[dict[str, Any], Depends(require_role("admin", "staff"))]
Admin = Annotated[dict[str, Any], Depends(require_role("admin"))]


@router.get("/customers")
async def customers_endpoint(
    accounts: Accounts,
    user: Staff,
    page: str | None = Query(None),
    limit: str | None = Query(None),
) -> JSONResponse:
    page_num, limit_num = page_bounds(page, limit)
    return success(await accounts.list_customers(page_num, limit_num))


@router.get("/staff")
async def staff_endpoint(
    accounts: Accounts,
    user: Admin,
    page: str | None = Query(None),
    limit: str | None = Query(None),
) -> JSONResponse:
    page_num, limit_num = page_bounds(page, limit)
    return success(await accounts.list_staff(page_num, limit_num))


@router.get("/audit-logs")
async def audit_logs_endpoint(
    audit: Annotated[AuditLog, Depends(get_audit)],
    user: Admin,
    page: str | None = Query(None),
    limit: str | None = Query(None),
    user_id: int | None = Query(None),
    action: str | None = Query(None),
) -> JSONResponse:
    """Audit trail, newest first, optionally filtered by acting user or action."""
    page_num, limit_num = page_bounds(page, limit, default_limit=50, max_limit=100)
    result = await audit.list_entries(
        page=page_num, limit=limit_num, user_id=user_id, action=action or None
    )
    return success(result)


@router.patch("/{user_id}/status")
async def user_status_endpoint(
    request: Request,
    user_id: int,
    accounts: Accounts,
    user: Admin,
    payload: Annotated[dict[str, Any], Body()],
) -> JSONResponse:
    """Activate or deactivate a user. ``is_active`` must be a JSON boolean."""
    is_active = payload.get("is_active")
    if not isinstance(is_active, bool):
        raise ValidationError("is_active must be a boolean value")

    await accounts.set_status(user_id, is_active, user, client_ip(request))
    return success(message=f"User {'activated' if is_active else 'deactivated'} successfully")
