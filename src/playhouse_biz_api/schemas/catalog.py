from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from playhouse_biz_api.schemas.billing import RateUnit


class UserCreateRequest(BaseModel):
    """Create lounge user request."""

    name: str = Field(min_length=1, description="Display name")
    phone: str | None = Field(default=None, description="Phone number")
    email: str | None = Field(default=None, description="Email address")


class UserResponse(BaseModel):
    """Lounge user response."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="User ID")
    name: str = Field(description="Display name")
    phone: str | None = Field(description="Phone number")
    email: str | None = Field(description="Email address")
    is_active: bool = Field(description="Whether the user can start sessions")
    created_at: datetime = Field(description="Created at")


class GamePriceIn(BaseModel):
    name: str = Field(min_length=1, description="Tier name")
    amount: Decimal = Field(ge=0, description="Rate per unit")
    unit: RateUnit = Field(default="hour", description="Rate unit")


class GameCreateRequest(BaseModel):
    """Create game request with its pricing tiers."""

    name: str = Field(min_length=1, description="Game name")
    prices: list[GamePriceIn] = Field(min_length=1, description="Pricing tiers, at least one")

    @field_validator("prices")
    @classmethod
    def validate_unique_tier_names(cls, value: list[GamePriceIn]) -> list[GamePriceIn]:
        names = [item.name for item in value]
        if len(set(names)) != len(names):
            raise ValueError("pricing tier names must be unique within a game")
        return value


class GamePriceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Tier ID")
    name: str = Field(description="Tier name")
    amount: Decimal = Field(description="Rate per unit")
    unit: str = Field(description="Rate unit")


class GameResponse(BaseModel):
    """Game response."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Game ID")
    name: str = Field(description="Game name")
    is_active: bool = Field(description="Whether the game is bookable")
    prices: list[GamePriceResponse] = Field(description="Pricing tiers")


class ProductCreateRequest(BaseModel):
    """Create product request."""

    name: str = Field(min_length=1, description="Product name")
    price: Decimal = Field(ge=0, description="Unit price")


class ProductUpdateRequest(BaseModel):
    """Partial product update; omitted fields are left unchanged."""

    name: str | None = Field(default=None, min_length=1, description="Product name")
    price: Decimal | None = Field(default=None, ge=0, description="Unit price")
    is_active: bool | None = Field(default=None, description="Soft delete flag")


class ProductResponse(BaseModel):
    """Product response."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Product ID")
    name: str = Field(description="Product name")
    price: Decimal = Field(description="Unit price")
    is_active: bool = Field(description="Soft delete flag")
