"""User accounts: registration, login, profiles and admin management."""

import asyncio
from datetime import UTC, date, datetime
from typing import Any

import sqlalchemy as sa
from loguru import logger

from ..exceptions import AuthenticationError, ConflictError, NotFoundError
from ..models import LoginRequest, RegisterRequest
from ..pagination import paginate, row_to_dict
from ..security import create_token, hash_password, verify_password
from ..storage import Database
from ..storage.schema import customers, staff, users
from ..types import AuthResult, PublicUser
from .audit import AuditLog

INVALID_CREDENTIALS = "Invalid email or password. Please check your credentials and try again."
EMAIL_TAKEN = (
    "This email is already registered. Please use a different email address or try logging in."
)
ADMIN_PROFILE = {"first_name": "FK", "last_name": "Designer", "phone": "+91 79890 65114"}

PUBLIC_USER_COLUMNS = (
    users.c.user_id,
    users.c.first_name,
    users.c.last_name,
    users.c.email,
    users.c.phone,
    users.c.role,
    users.c.is_active,
)


def public_user(row: dict[str, Any]) -> PublicUser:
    return {
        "user_id": row["user_id"],
        "first_name": row["first_name"],
        "last_name": row["last_name"],
        "email": row["email"],
        "phone": row["phone"],
        "role": row["role"],
        "is_active": bool(row["is_active"]),
    }


class AccountService:
    """Account operations over the ``users``, ``customers`` and ``staff`` tables."""

    def __init__(self, database: Database, audit: AuditLog) -> None:
        """Initialize with injected dependencies."""
        self.database = database
        self.audit = audit

    async def find_by_email(self, email: str) -> dict[str, Any] | None:
        """Case-insensitive lookup, including the password hash."""
        query = sa.select(users).where(sa.func.lower(users.c.email) == email.lower())
        row = await self.database.fetch_one(query)
        return row_to_dict(row) if row else None

    async def get_user(self, user_id: int) -> dict[str, Any] | None:
        query = sa.select(*PUBLIC_USER_COLUMNS).where(users.c.user_id == user_id)
        row = await self.database.fetch_one(query)
        return row_to_dict(row) if row else None

    async def register(self, payload: RegisterRequest, ip_address: str | None) -> AuthResult:
        """Create a customer account and return it with a fresh token.

        Raises:
            ConflictError: If the email is already registered (any casing).
        """
        if await self.find_by_email(payload.email):
            logger.info(f"Registration rejected, email exists: {payload.email}")
            raise ConflictError(EMAIL_TAKEN)

        password_hash = await asyncio.to_thread(hash_password, payload.password)
        now = datetime.now(UTC)
        user_id = await self.database.fetch_val(
            users.insert()
            .values(
                first_name=payload.first_name,
                last_name=payload.last_name,
                email=payload.email,
                phone=payload.phone,
                password_hash=password_hash,
                role="customer",
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            .returning(users.c.user_id)
        )

        await self.database.execute(
            customers.insert().values(
                user_id=user_id,
                date_of_birth=payload.date_of_birth,
                address_1=payload.address_1 or None,
                address_2=payload.address_2 or None,
            )
        )
        await self.audit.record(
            user_id, "register", ip_address, {"email": payload.email, "role": "customer"}
        )
        logger.info(f"Registered customer {user_id} ({payload.email})")

        user: PublicUser = {
            "user_id": user_id,
            "first_name": payload.first_name,
            "last_name": payload.last_name,
            "email": payload.email,
            "phone": payload.phone,
            "role": "customer",
            "is_active": True,
        }
        return {"user": user, "token": create_token(user_id, payload.email, "customer")}

    async def login(self, payload: LoginRequest, ip_address: str | None) -> AuthResult:
        """Verify credentials and issue a token.

        Raises:
            AuthenticationError: Unknown email, wrong password or inactive account.
        """
        account = await self.find_by_email(payload.email)
        if account is None:
            logger.info(f"Login failed, unknown email: {payload.email}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        if not account["is_active"]:
            logger.info(f"Login refused, inactive account: {payload.email}")
            raise AuthenticationError("Account is inactive. Please contact support.")

        valid = await asyncio.to_thread(verify_password, account["password_hash"], payload.password)
        if not valid:
            logger.info(f"Login failed, wrong password: {payload.email}")
            raise AuthenticationError(INVALID_CREDENTIALS)

        await self.audit.record(
            account["user_id"], "login", ip_address, {"email": account["email"]}
        )
        logger.info(f"Login successful for {account['email']} (role {account['role']})")
        return {
            "user": public_user(account),
            "token": create_token(account["user_id"], account["email"], account["role"]),
        }

    async def logout(self, user: dict[str, Any], ip_address: str | None) -> None:
        await self.audit.record(user["user_id"], "logout", ip_address, {"email": user["email"]})
        logger.info(f"Logout for {user['email']}")

    async def profile(self, user_id: int) -> dict[str, Any]:
        """User joined with customer details.

        Raises:
            NotFoundError: If the user no longer exists.
        """
        query = (
            sa.select(
                *PUBLIC_USER_COLUMNS,
                users.c.created_at,
                customers.c.date_of_birth,
                customers.c.address_1,
                customers.c.address_2,
            )
            .select_from(users.outerjoin(customers, users.c.user_id == customers.c.user_id))
            .where(users.c.user_id == user_id)
        )
        row = await self.database.fetch_one(query)
        if row is None:
            raise NotFoundError("User not found")
        return row_to_dict(row)

    async def list_customers(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        joined = users.join(customers, users.c.user_id == customers.c.user_id)
        condition = users.c.role == "customer"
        query = (
            sa.select(
                users.c.user_id,
                users.c.first_name,
                users.c.last_name,
                users.c.email,
                users.c.phone,
                users.c.is_active,
                users.c.created_at,
                customers.c.customer_id,
                customers.c.date_of_birth,
                customers.c.address_1,
                customers.c.address_2,
            )
            .select_from(joined)
            .where(condition)
            .order_by(users.c.created_at.desc(), users.c.user_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        total, rows = await self._count_and_fetch(joined, condition, query)
        return {
            "customers": [row_to_dict(row) for row in rows],
            "pagination": paginate(page, limit, total),
        }

    async def list_staff(self, page: int = 1, limit: int = 20) -> dict[str, Any]:
        joined = users.join(staff, users.c.user_id == staff.c.user_id)
        condition = users.c.role.in_(("staff", "admin"))
        query = (
            sa.select(
                *PUBLIC_USER_COLUMNS,
                users.c.created_at,
                staff.c.staff_id,
                staff.c.position,
                staff.c.department,
                staff.c.start_date,
            )
            .select_from(joined)
            .where(condition)
            .order_by(users.c.created_at.desc(), users.c.user_id.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        total, rows = await self._count_and_fetch(joined, condition, query)
        return {
            "staff": [row_to_dict(row) for row in rows],
            "pagination": paginate(page, limit, total),
        }

    async def _count_and_fetch(self, joined: Any, condition: Any, query: Any) -> tuple[int, list]:
        count_query = sa.select(sa.func.count()).select_from(joined).where(condition)
        total, rows = await asyncio.gather(
            self.database.fetch_val(count_query),
            self.database.fetch_all(query),
        )
        return total or 0, rows

    async def set_status(
        self, user_id: int, is_active: bool, actor: dict[str, Any], ip_address: str | None
    ) -> None:
        """Activate or deactivate a user.

        Raises:
            NotFoundError: If the user does not exist.
        """
        target = await self.get_user(user_id)
        if target is None:
            raise NotFoundError("User not found")

        await self.database.execute(
            users.update()
            .where(users.c.user_id == user_id)
            .values(is_active=is_active, updated_at=datetime.now(UTC))
        )
        await self.audit.record(
            actor["user_id"],
            "update_user_status",
            ip_address,
            {"target_user_id": user_id, "target_email": target["email"], "new_status": is_active},
        )
        logger.info(
            f"User {user_id} {'activated' if is_active else 'deactivated'} by {actor['email']}"
        )

    async def bootstrap_admin(self, email: str, password: str) -> int:
        """Create or refresh the administrator account.

        An existing user with the email becomes an active admin with the new
        password. Otherwise the user is created with a matching ``staff`` row.

        Returns:
            The admin's user id.
        """
        email = email.strip().lower()
        password_hash = await asyncio.to_thread(hash_password, password)
        now = datetime.now(UTC)

        existing = await self.find_by_email(email)
        if existing:
            await self.database.execute(
                users.update()
                .where(users.c.user_id == existing["user_id"])
                .values(
                    **ADMIN_PROFILE,
                    password_hash=password_hash,
                    role="admin",
                    is_active=True,
                    updated_at=now,
                )
            )
            logger.info(f"Admin user updated: {email}")
            return existing["user_id"]

        user_id = await self.database.fetch_val(
            users.insert()
            .values(
                first_name=ADMIN_PROFILE["first_name"],
                last_name=ADMIN_PROFILE["last_name"],
                email=email,
                phone=ADMIN_PROFILE["phone"],
                password_hash=password_hash,
                role="admin",
                is_active=True,
                created_at=now,
                updated_at=now,
            )
            .returning(users.c.user_id)
        )
        await self.database.execute(
            staff.insert().values(
                user_id=user_id,
                position="System Administrator",
                department="Management",
                start_date=date(2025, 1, 1),
            )
        )
        logger.info(f"Admin user created: {email}")
        return user_id
