from datetime import datetime
from decimal import Decimal

from playhouse_biz_api.schemas.billing import DualRatePolicy, ExtraLineResult, RatePlan
from playhouse_biz_api.services.bill_assembler import assemble_snapshot
from playhouse_biz_api.services.billing_engine import compose
from playhouse_biz_api.services.extras_ledger import ExtrasResult
from playhouse_biz_api.services.receipt import format_duration, format_money, render_receipt_data


def test_format_helpers() -> None:
    assert format_duration(0) == "0h 0m 0s"
    assert format_duration(3725) == "1h 2m 5s"
    assert format_money(Decimal("1500")) == "1500"
    assert format_money(Decimal("12.5")) == "12.50"


def test_receipt_copies_snapshot_amounts() -> None:
    policy = DualRatePolicy(
        enabled=True,
        primary=RatePlan(name="Standard", amount=Decimal("1000"), unit="hour"),
        secondary=RatePlan(name="Evening", amount=Decimal("2000"), unit="hour"),
    )
    start = datetime(2026, 2, 1, 17, 30, 0)
    composed = compose(policy, start, datetime(2026, 2, 1, 18, 30, 0))
    chips = ExtraLineResult(product_id=2, name="Chips", unit_price=Decimal("60"), quantity=2, line_total=Decimal("120"))
    snapshot = assemble_snapshot(start, composed, ExtrasResult(total=Decimal("120"), detail=[chips]), True)

    receipt = render_receipt_data(snapshot, player_name="Aarav", game_name="Cricket")
    assert receipt.title == "Session Bill"
    assert receipt.duration == "1h 0m 0s"
    assert [line.amount for line in receipt.game_lines] == [Decimal("500"), Decimal("1000")]
    assert receipt.game_lines[0].label == "Before 18:00 (Standard)"
    assert receipt.game_lines[1].detail == "0h 30m 0s @ 2000/hr"
    assert receipt.extras_lines[0].detail == "2 x 60"
    assert receipt.grand_total == Decimal("1620")
    assert receipt.dual_pricing_note is not None


def test_single_rate_receipt_has_no_dual_pricing_note() -> None:
    policy = DualRatePolicy(primary=RatePlan(name="30min", amount=Decimal("100"), unit="30min"))
    start = datetime(2026, 2, 1, 10, 0, 0)
    composed = compose(policy, start, datetime(2026, 2, 1, 10, 45, 0))
    receipt = render_receipt_data(assemble_snapshot(start, composed, ExtrasResult(), False))
    assert receipt.game_lines[0].detail == "0h 45m 0s @ 100/30min"
    assert receipt.extras_lines == []
    assert receipt.grand_total == Decimal("150")
    assert receipt.dual_pricing_note is None
