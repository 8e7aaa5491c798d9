"""Authentication routes: register, login, logout, profile."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from ..dependencies import client_ip, get_accounts
from ..middleware import CurrentUser
from ..models import LoginRequest, RegisterRequest
from ..ratelimit import auth_rate_limit
from ..responses import success
from ..services import AccountService

router = APIRouter(prefix="/api/auth", tags=["auth"])

Accounts = Annotated[AccountService, Depends(get_accounts)]


@router.post("/register")
@auth_rate_limit
async def register_endpoint(
    request: Request, payload: RegisterRequest, accounts: Accounts
) -> JSONResponse:
    """Create a customer account and return it with a token."""
    logger.info(f"Registration attempt for {payload.email} from {client_ip(request)}")
    result = await accounts.register(payload, client_ip(request))
    return success(result, "User registered successfully", status.HTTP_201_CREATED)


@router.post("/login")
@auth_rate_limit
async def login_endpoint(request: Request, payload: LoginRequest, accounts: Accounts) -> JSONResponse:
    logger.info(f"Login attempt for {payload.email} from {client_ip(request)}")
    result = await accounts.login(payload, client_ip(request))
    return success(result, "Login successful")


@router.post("/logout")
@auth_rate_limit
async def logout_endpoint(request: Request, user: CurrentUser, accounts: Accounts) -> JSONResponse:
    await accounts.logout(user, client_ip(request))
    return success(message="Logout successful")


@router.get("/profile")
@auth_rate_limit
async def profile_endpoint(request: Request, user: CurrentUser, accounts: Accounts) -> JSONResponse:
    """Current user joined with customer details."""
    return success(await accounts.profile(user["user_id"]))
