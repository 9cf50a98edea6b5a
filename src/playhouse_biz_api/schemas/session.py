from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from playhouse_biz_api.schemas.billing import BillSnapshot, DualRatePolicy, RatePlan, SubPeriod

SessionStatus = Literal["active", "completed"]


class SessionStartRequest(BaseModel):
    """Start session request."""

    user_id: int = Field(description="Player ID")
    game_id: int = Field(description="Game ID")
    price_name: str | None = Field(default=None, description="Pricing tier; defaults to the game's first tier")
    after_cutover_price_name: str | None = Field(
        default=None, description="Tier billed from the daily cut-over on; omitted means single rate"
    )
    start_time: datetime | None = Field(default=None, description="Start time; defaults to now")


class GameSessionResponse(BaseModel):
    """Session response."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(description="Session ID")
    user_id: int = Field(description="Player ID")
    game_id: int = Field(description="Game ID")
    game_name: str = Field(description="Game name at session start")
    start_time: datetime = Field(description="Start time")
    end_time: datetime | None = Field(description="End time")
    is_active: bool = Field(description="Active until closed")
    rate_plan: RatePlan = Field(description="Rate plan snapshot")
    dual_rate_policy: DualRatePolicy = Field(description="Dual-rate policy snapshot")
    bill_amount: Decimal | None = Field(description="Grand total once closed")
    bill_details: BillSnapshot | None = Field(description="Bill snapshot once closed")


class SessionPreviewResponse(BaseModel):
    """Running amount of a session."""

    session_id: int = Field(description="Session ID")
    is_active: bool = Field(description="Whether the amount is live")
    as_of: datetime = Field(description="Instant the amount was computed for")
    duration_sec: int = Field(description="Elapsed seconds")
    game_amount: Decimal = Field(description="Play time amount")
    breakdown: list[SubPeriod] = Field(description="Sub-period breakdown")
    overlaps_cutover: bool = Field(description="Session straddles the cut-over")


class SessionLogItem(BaseModel):
    """Session log row."""

    id: int = Field(description="Session ID")
    user_id: int = Field(description="Player ID")
    user_name: str | None = Field(default=None, description="Player name")
    game_id: int = Field(description="Game ID")
    game_name: str = Field(description="Game name at session start")
    start_time: datetime = Field(description="Start time")
    end_time: datetime | None = Field(description="End time")
    is_active: bool = Field(description="Active until closed")
    duration_sec: int = Field(description="Billed or elapsed seconds")
    price: Decimal = Field(description="Grand total, or the live amount for active sessions")
    bill_details: BillSnapshot | None = Field(default=None, description="Bill snapshot once closed")


class SessionLogSummary(BaseModel):
    """Aggregate over the filtered session logs."""

    total_sessions: int = Field(description="Number of sessions")
    active_sessions: int = Field(description="Number of active sessions")
    completed_sessions: int = Field(description="Number of closed sessions")
    total_revenue: Decimal = Field(description="Sum of grand totals of closed sessions")
