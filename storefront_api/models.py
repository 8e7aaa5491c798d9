"""Request models using Pydantic.

Free-text fields are trimmed before their length is checked and HTML-escaped
afterwards, so stored text is always safe to render.
"""

import html
import re
from datetime import date
from typing import Any, Literal, get_args

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_core import PydanticCustomError

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
PHONE_PATTERN = r"^[\+]?[0-9\s\-\(\)]+$"

ServiceType = Literal[
    "custom-tailoring", "fabric-selection", "design-consultation", "alterations"
]
SERVICE_TYPES = get_args(ServiceType)


def strip_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


def escape_text(value: str | None) -> str | None:
    if value is None:
        return None
    return html.escape(value, quote=True).replace("/", "&#x2F;")


def normalize_email(value: Any) -> str:
    """Validate an email address and return it lower-cased."""
    if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
        raise PydanticCustomError(
            "invalid_email", "Please provide a valid email address", {"input": value}
        )
    return value.strip().lower()


class RegisterRequest(BaseModel):
    """New customer account."""

    first_name: str = Field(..., min_length=2, max_length=50)
    last_name: str = Field(..., min_length=2, max_length=50)
    email: str
    phone: str = Field(..., min_length=10, max_length=15, pattern=PHONE_PATTERN)
    password: str = Field(..., min_length=6)
    date_of_birth: date | None = None
    address_1: str | None = Field(None, max_length=255)
    address_2: str | None = Field(None, max_length=255)

    @field_validator("first_name", "last_name", "address_1", "address_2", mode="before")
    @classmethod
    def strip_fields(cls, value: Any) -> Any:
        return strip_text(value)

    @field_validator("first_name", "last_name", "address_1", "address_2")
    @classmethod
    def escape_fields(cls, value: str | None) -> str | None:
        return escape_text(value)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, value: Any) -> str:
        return normalize_email(value)


class LoginRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=1)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, value: Any) -> str:
        return normalize_email(value)


class ProductRequest(BaseModel):
    """Product payload for create and full update."""

    id: str | None = Field(None, max_length=20)
    name: str = Field(..., min_length=2, max_length=255)
    price: float = Field(..., ge=0)
    price_min: float | None = Field(None, ge=0)
    price_max: float | None = Field(None, ge=0)
    category: Literal["men", "kids", "fabric"]
    subcategory: str = Field(..., min_length=2, max_length=50)
    description: str = Field(..., min_length=10, max_length=1000)
    composition: str = Field(..., min_length=2, max_length=255)
    fabric_pattern: str | None = Field(None, max_length=50)
    images: list[str] = Field(..., min_length=1)
    colors: list[str] = Field(..., min_length=1)
    featured: bool = False
    best_seller: bool = False
    new_arrival: bool = False

    @field_validator("id", mode="before")
    @classmethod
    def blank_id(cls, value: Any) -> Any:
        value = strip_text(value)
        return value or None

    @field_validator(
        "name", "subcategory", "description", "composition", "fabric_pattern", mode="before"
    )
    @classmethod
    def strip_fields(cls, value: Any) -> Any:
        return strip_text(value)

    @field_validator("name", "subcategory", "description", "composition", "fabric_pattern")
    @classmethod
    def escape_fields(cls, value: str | None) -> str | None:
        return escape_text(value)


class ContactRequest(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    email: str
    phone: str | None = Field(None, min_length=10, max_length=15, pattern=PHONE_PATTERN)
    subject: str = Field(..., min_length=2, max_length=200)
    message: str = Field(..., min_length=10, max_length=1000)

    @field_validator("name", "subject", "message", mode="before")
    @classmethod
    def strip_fields(cls, value: Any) -> Any:
        return strip_text(value)

    @field_validator("name", "subject", "message")
    @classmethod
    def escape_fields(cls, value: str) -> str | None:
        return escape_text(value)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, value: Any) -> str:
        return normalize_email(value)


class CustomizationRequest(BaseModel):
    """Bespoke tailoring request. ``serviceType`` keeps its camelCase wire name."""

    model_config = ConfigDict(populate_by_name=True)

    name: str = Field(..., min_length=2, max_length=100)
    email: str
    phone: str = Field(..., min_length=10, max_length=15, pattern=PHONE_PATTERN)
    service_type: ServiceType = Field(..., alias="serviceType")
    description: str = Field(..., min_length=10, max_length=1000)
    budget: str | None = Field(None, max_length=100)
    timeline: str | None = Field(None, max_length=100)
    measurements: str | None = Field(None, max_length=1000)

    @field_validator(
        "name", "description", "budget", "timeline", "measurements", mode="before"
    )
    @classmethod
    def strip_fields(cls, value: Any) -> Any:
        return strip_text(value)

    @field_validator("name", "description", "budget", "timeline", "measurements")
    @classmethod
    def escape_fields(cls, value: str | None) -> str | None:
        return escape_text(value)

    @field_validator("email", mode="before")
    @classmethod
    def validate_email(cls, value: Any) -> str:
        return normalize_email(value)
