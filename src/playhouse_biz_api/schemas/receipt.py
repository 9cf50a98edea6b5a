from __future__ import annotations

from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class ReceiptLine(BaseModel):
    """One printable receipt row."""

    label: str = Field(description="Row label")
    detail: str = Field(description="Secondary text, e.g. duration and rate")
    amount: Decimal = Field(description="Row amount")


class ReceiptData(BaseModel):
    """Printable projection of a bill snapshot."""

    title: str = Field(description="Receipt heading")
    player_name: str | None = Field(default=None, description="Player name")
    game_name: str | None = Field(default=None, description="Game name")
    start_time: datetime = Field(description="Session start")
    end_time: datetime = Field(description="Session end")
    duration: str = Field(description="Duration formatted as Hh Mm Ss")
    game_lines: list[ReceiptLine] = Field(description="Play time rows")
    extras_lines: list[ReceiptLine] = Field(description="Extras rows")
    game_amount: Decimal = Field(description="Play time total")
    extras_total: Decimal = Field(description="Extras total")
    grand_total: Decimal = Field(description="Amount due")
    dual_pricing_note: str | None = Field(default=None, description="Shown when the rate switched mid-session")
