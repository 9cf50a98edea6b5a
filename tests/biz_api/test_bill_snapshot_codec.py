import json
from datetime import datetime
from decimal import Decimal

import pytest
from pydantic import ValidationError

from playhouse_biz_api.schemas.billing import (
    BillSnapshot,
    DualRatePolicy,
    ExtraLineResult,
    RatePlan,
    dump_bill_snapshot,
    load_bill_snapshot,
)
from playhouse_biz_api.services.billing_engine import compose


def _snapshot() -> BillSnapshot:
    policy = DualRatePolicy(
        enabled=True,
        primary=RatePlan(name="Standard", amount=Decimal("1000"), unit="hour"),
        secondary=RatePlan(name="Evening", amount=Decimal("2000"), unit="hour"),
    )
    composed = compose(policy, datetime(2026, 2, 1, 17, 30, 0), datetime(2026, 2, 1, 18, 30, 0))
    water = ExtraLineResult(
        product_id=1, name="Water", unit_price=Decimal("50"), quantity=3, line_total=Decimal("150")
    )
    return BillSnapshot(
        start_time=datetime(2026, 2, 1, 17, 30, 0),
        end_time=composed.end_time,
        duration_sec=composed.duration_sec,
        game_amount=composed.game_amount,
        breakdown=composed.breakdown,
        extras_total=Decimal("150"),
        extras_detail=[water],
        grand_total=composed.game_amount + Decimal("150"),
        has_dual_pricing=True,
        overlaps_cutover=True,
        duration_before_cutover_sec=1800,
        duration_after_cutover_sec=1800,
    )


def test_snapshot_survives_json_storage() -> None:
    snapshot = _snapshot()
    stored = dump_bill_snapshot(snapshot)
    assert isinstance(stored["grand_total"], str)

    assert load_bill_snapshot(stored) == snapshot
    assert load_bill_snapshot(json.dumps(stored)) == snapshot
    assert load_bill_snapshot(None) is None


def test_snapshot_rejects_inconsistent_totals() -> None:
    stored = dump_bill_snapshot(_snapshot())
    stored["grand_total"] = "9999"
    with pytest.raises(ValidationError):
        load_bill_snapshot(stored)

    stored = dump_bill_snapshot(_snapshot())
    stored["extras_total"] = "0"
    with pytest.raises(ValidationError):
        load_bill_snapshot(stored)


def test_rate_plan_unit_aliases() -> None:
    assert RatePlan.model_validate({"amount": "100", "unit": "half_hourly"}).unit == "30min"
    assert RatePlan.model_validate({"amount": "100", "unit": "Hourly"}).unit == "hour"
    assert RatePlan.model_validate({"amount": "100", "unit": None}).unit == "hour"
    with pytest.raises(ValidationError):
        RatePlan.model_validate({"amount": "100", "unit": "fortnight"})
