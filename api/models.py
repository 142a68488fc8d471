"""
API request and response models for FleetRent REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py and
fleet/models.py, which own the internal domain representation. Route
handlers map between the two.

Wire format is camelCase (accessToken, rentStartedAt, pageSize). Python
attribute names stay snake_case; _CamelModel generates the aliases and
accepts either spelling on input.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from auth.models import Identity
from fleet.models import Car, Rental

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Errors and status
# ---------------------------------------------------------------------------


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    name: str
    message: str
    details: Optional[Any] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class StatusResponse(BaseModel):
    """Response for GET /."""

    model_config = ConfigDict(frozen=True)

    status: str = "OK"
    message: str


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


class _Credentials(_CamelModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(min_length=3, max_length=255, pattern=EMAIL_PATTERN)
    password: str = Field(min_length=1, max_length=72)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        """Emails are matched case-insensitively; store and look up lowercase."""
        return value.lower()


class LoginRequest(_Credentials):
    """Request body for POST /auth/login."""


class RegisterRequest(_Credentials):
    """Request body for POST /auth/register."""

    name: str = Field(min_length=1, max_length=255)


class TokenResponse(_CamelModel):
    """Response for POST /auth/register and POST /auth/login."""

    access_token: str


class RoleResponse(_CamelModel):
    id: int
    name: str


class ProfileResponse(_CamelModel):
    """Response for GET /auth/me. Never includes the password hash."""

    id: int
    name: str
    email: str
    role_id: int
    role: RoleResponse
    created_at: str

    @classmethod
    def from_identity(cls, identity: Identity) -> "ProfileResponse":
        return cls(
            id=identity.id,
            name=identity.name,
            email=identity.email,
            role_id=identity.role_id,
            role=RoleResponse(id=identity.role.id, name=identity.role.name),
            created_at=identity.created_at,
        )


# ---------------------------------------------------------------------------
# Cars
# ---------------------------------------------------------------------------


class CarSizeEnum(str, Enum):
    SMALL = "SMALL"
    MEDIUM = "MEDIUM"
    LARGE = "LARGE"


class CarCreate(_CamelModel):
    """Request body for POST /cars and PUT /cars/{id}."""

    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(min_length=1, max_length=255)
    price: int = Field(ge=0)
    size: CarSizeEnum
    image: Optional[str] = Field(default=None, max_length=2048)


class CarResponse(_CamelModel):
    id: int
    name: str
    price: int
    size: str
    image: Optional[str] = None
    created_at: str
    updated_at: str

    @classmethod
    def from_car(cls, car: Car) -> "CarResponse":
        return cls(
            id=car.id,
            name=car.name,
            price=car.price,
            size=car.size,
            image=car.image,
            created_at=car.created_at,
            updated_at=car.updated_at,
        )


class Pagination(_CamelModel):
    page: int
    page_count: int
    page_size: int
    count: int


class CarListMeta(_CamelModel):
    pagination: Pagination


class CarListResponse(_CamelModel):
    """Response for GET /cars."""

    cars: list[CarResponse]
    meta: CarListMeta


# ---------------------------------------------------------------------------
# Rentals
# ---------------------------------------------------------------------------


class RentRequest(_CamelModel):
    """Request body for POST /cars/{id}/rent.

    rent_ended_at omitted or null records an open-ended rental.
    """

    rent_started_at: datetime
    rent_ended_at: Optional[datetime] = None

    @field_validator("rent_started_at", "rent_ended_at")
    @classmethod
    def assume_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        """Timestamps without an offset are taken as UTC."""
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @model_validator(mode="after")
    def check_window(self) -> "RentRequest":
        if self.rent_ended_at is not None and self.rent_ended_at < self.rent_started_at:
            raise ValueError("rentEndedAt must not be before rentStartedAt")
        return self


class RentalResponse(_CamelModel):
    id: int
    car_id: int
    user_id: int
    rent_started_at: datetime
    rent_ended_at: Optional[datetime] = None
    created_at: str

    @classmethod
    def from_rental(cls, rental: Rental) -> "RentalResponse":
        return cls(
            id=rental.id,
            car_id=rental.car_id,
            user_id=rental.user_id,
            rent_started_at=rental.rent_started_at,
            rent_ended_at=rental.rent_ended_at,
            created_at=rental.created_at,
        )
