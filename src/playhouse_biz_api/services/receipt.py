from __future__ import annotations

from decimal import Decimal

from playhouse_biz_api.schemas.billing import BillSnapshot, SubPeriod
from playhouse_biz_api.schemas.receipt import ReceiptData, ReceiptLine

RECEIPT_TITLE = "Session Bill"

_UNIT_LABELS = {
    "hour": "hr",
    "30min": "30min",
}


def format_duration(duration_sec: int) -> str:
    hours, remainder = divmod(max(0, duration_sec), 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}h {minutes}m {seconds}s"


def format_money(value: Decimal) -> str:
    if value == value.to_integral_value():
        return str(value.quantize(Decimal("1")))
    return str(value.quantize(Decimal("0.01")))


def format_rate(item: SubPeriod) -> str:
    return f"{format_money(item.rate)}/{_UNIT_LABELS.get(item.unit, item.unit)}"


def render_receipt_data(
    snapshot: BillSnapshot,
    *,
    player_name: str | None = None,
    game_name: str | None = None,
) -> ReceiptData:
    """Project a stored snapshot into printable rows; amounts are copied, never recomputed."""
    game_lines = [
        ReceiptLine(
            label=f"{item.label} ({item.rate_name})",
            detail=f"{format_duration(item.duration_sec)} @ {format_rate(item)}",
            amount=item.amount,
        )
        for item in snapshot.breakdown
    ]
    extras_lines = [
        ReceiptLine(
            label=item.name,
            detail=f"{item.quantity} x {format_money(item.unit_price)}",
            amount=item.line_total,
        )
        for item in snapshot.extras_detail
    ]

    note = None
    if snapshot.has_dual_pricing and snapshot.overlaps_cutover:
        note = (
            f"Pricing switched mid-session: {format_duration(snapshot.duration_before_cutover_sec)} "
            f"before and {format_duration(snapshot.duration_after_cutover_sec)} after the cut-over"
        )

    return ReceiptData(
        title=RECEIPT_TITLE,
        player_name=player_name,
        game_name=game_name,
        start_time=snapshot.start_time,
        end_time=snapshot.end_time,
        duration=format_duration(snapshot.duration_sec),
        game_lines=game_lines,
        extras_lines=extras_lines,
        game_amount=snapshot.game_amount,
        extras_total=snapshot.extras_total,
        grand_total=snapshot.grand_total,
        dual_pricing_note=note,
    )
