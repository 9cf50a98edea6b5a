from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator, model_validator

RateUnit = Literal["hour", "30min"]

_UNIT_ALIASES: dict[str, str] = {
    "hour": "hour",
    "hourly": "hour",
    "hr": "hour",
    "30min": "30min",
    "half_hourly": "30min",
    "halfhourly": "30min",
}


def normalize_money(value: Any) -> Decimal:
    """Coerce a stored rate/price to a non-negative Decimal; anything unusable becomes 0."""
    if value is None or value == "":
        return Decimal("0")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return Decimal("0")
    if not amount.is_finite() or amount < 0:
        return Decimal("0")
    return amount


class RatePlan(BaseModel):
    """A named price per unit of play time, copied into a session at start."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(default="Standard", description="Tier name, e.g. Hourly or 30min")
    amount: Decimal = Field(default=Decimal("0"), description="Price per unit; missing or malformed means 0")
    unit: RateUnit = Field(default="hour", description="Billing unit: hour or 30min")

    @field_validator("amount", mode="before")
    @classmethod
    def normalize_amount(cls, value: Any) -> Decimal:
        return normalize_money(value)

    @field_validator("unit", mode="before")
    @classmethod
    def normalize_unit(cls, value: Any) -> Any:
        if value is None:
            return "hour"
        if isinstance(value, str):
            return _UNIT_ALIASES.get(value.strip().lower(), value)
        return value


class DualRatePolicy(BaseModel):
    """Primary plan before the daily cut-over, optional secondary plan from it onwards."""

    model_config = ConfigDict(frozen=True)

    enabled: bool = Field(default=False, description="Switch to the secondary plan at the cut-over")
    primary: RatePlan = Field(description="Plan billed before the cut-over (or always, when disabled)")
    secondary: RatePlan | None = Field(default=None, description="Plan billed from the cut-over onwards")
    cutover_hour: int = Field(default=18, ge=0, le=23, description="Cut-over hour, reference timezone")
    cutover_minute: int = Field(default=0, ge=0, le=59, description="Cut-over minute")

    @model_validator(mode="before")
    @classmethod
    def disable_without_secondary(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        secondary = data.get("secondary")
        if secondary is None:
            return {**data, "enabled": False}
        if isinstance(secondary, dict) and secondary.get("amount") is None:
            return {**data, "enabled": False}
        return data


class SubPeriod(BaseModel):
    """A contiguous slice of the session billed at one rate."""

    model_config = ConfigDict(frozen=True)

    label: str = Field(description="Human readable label of the slice")
    start_time: datetime = Field(description="Slice start")
    end_time: datetime = Field(description="Slice end")
    duration_sec: int = Field(ge=0, description="Slice length in whole seconds")
    rate_name: str = Field(description="Rate plan name applied to the slice")
    rate: Decimal = Field(description="Rate applied to the slice")
    unit: RateUnit = Field(description="Unit of the applied rate")
    amount: Decimal = Field(description="Rounded amount of the slice")


class ExtraLineItem(BaseModel):
    """One product selection sent with a close request."""

    product_id: int = Field(description="Product ID in the catalog")
    quantity: int = Field(default=1, description="Quantity; lines with quantity <= 0 are dropped")


class ExtraLineResult(BaseModel):
    """An accepted and recorded extras line."""

    model_config = ConfigDict(frozen=True)

    product_id: int = Field(description="Product ID")
    name: str = Field(description="Product name at charge time")
    unit_price: Decimal = Field(description="Unit price at charge time")
    quantity: int = Field(gt=0, description="Quantity")
    line_total: Decimal = Field(description="unit_price * quantity")


class BillSnapshot(BaseModel):
    """Immutable record of how a session's charge was computed."""

    model_config = ConfigDict(frozen=True)

    start_time: datetime = Field(description="Session start")
    end_time: datetime = Field(description="Effective session end")
    duration_sec: int = Field(ge=0, description="Billed duration in seconds")
    game_amount: Decimal = Field(description="Sum of sub-period amounts")
    breakdown: list[SubPeriod] = Field(default_factory=list, description="Sub-period breakdown")
    extras_total: Decimal = Field(default=Decimal("0"), description="Sum of extras line totals")
    extras_detail: list[ExtraLineResult] = Field(default_factory=list, description="Accepted extras lines")
    grand_total: Decimal = Field(description="game_amount + extras_total")
    has_dual_pricing: bool = Field(default=False, description="Dual-rate policy was enabled")
    overlaps_cutover: bool = Field(default=False, description="Session straddled the cut-over")
    duration_before_cutover_sec: int = Field(default=0, ge=0, description="Seconds before the cut-over")
    duration_after_cutover_sec: int = Field(default=0, ge=0, description="Seconds from the cut-over on")

    @model_validator(mode="after")
    def check_totals(self) -> "BillSnapshot":
        if self.game_amount != sum((item.amount for item in self.breakdown), Decimal("0")):
            raise ValueError("game_amount must equal the sum of breakdown amounts")
        if self.extras_total != sum((item.line_total for item in self.extras_detail), Decimal("0")):
            raise ValueError("extras_total must equal the sum of extras line totals")
        if self.grand_total != self.game_amount + self.extras_total:
            raise ValueError("grand_total must equal game_amount + extras_total")
        return self


BillSnapshotAdapter = TypeAdapter(BillSnapshot)


def dump_bill_snapshot(snapshot: BillSnapshot) -> dict[str, Any]:
    return BillSnapshotAdapter.dump_python(snapshot, mode="json")


def load_bill_snapshot(raw: dict[str, Any] | str | bytes | None) -> BillSnapshot | None:
    if raw is None:
        return None
    if isinstance(raw, (str, bytes)):
        return BillSnapshotAdapter.validate_json(raw)
    return BillSnapshotAdapter.validate_python(raw)


class SessionCloseRequest(BaseModel):
    """Close (end) a session request."""

    extras: list[ExtraLineItem] = Field(default_factory=list, description="Products sold with the session")
    end_time: datetime | None = Field(default=None, description="End time override; defaults to now")


class BillingQuoteRequest(BaseModel):
    """Cost calculator request: price an arbitrary interval without a session."""

    policy: DualRatePolicy = Field(description="Rate policy to apply")
    start_time: datetime = Field(description="Interval start")
    end_time: datetime = Field(description="Interval end")


class BillingQuoteResponse(BaseModel):
    """Cost calculator response."""

    duration_sec: int = Field(description="Billed duration in seconds")
    game_amount: Decimal = Field(description="Total amount")
    breakdown: list[SubPeriod] = Field(description="Sub-period breakdown")
    overlaps_cutover: bool = Field(description="Interval straddled the cut-over")
    duration_before_cutover_sec: int = Field(description="Seconds before the cut-over")
    duration_after_cutover_sec: int = Field(description="Seconds from the cut-over on")
