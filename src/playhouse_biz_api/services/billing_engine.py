from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, time, timedelta
from decimal import Decimal, ROUND_HALF_UP
from functools import lru_cache
from typing import Any, Protocol
from zoneinfo import ZoneInfo

from playhouse_biz_api.schemas.billing import DualRatePolicy, RatePlan, SubPeriod

DEFAULT_TIMEZONE = "Asia/Kolkata"

UNIT_SECONDS: dict[str, int] = {
    "hour": 3600,
    "30min": 1800,
}

FULL_SESSION_LABEL = "Full session"

_ONE_SECOND = timedelta(seconds=1)


class SessionRates(Protocol):
    """What the engine needs to read from a stored session."""

    start_time: datetime
    rate_plan: dict[str, Any]
    dual_rate_policy: dict[str, Any] | None


@dataclass(frozen=True)
class DurationSplit:
    before_sec: int
    after_sec: int
    overlaps: bool

    @property
    def total_sec(self) -> int:
        return self.before_sec + self.after_sec


@dataclass(frozen=True)
class ComposeResult:
    game_amount: Decimal
    breakdown: list[SubPeriod]
    split: DurationSplit
    # end after clamping to start and aligning to start's timezone awareness
    end_time: datetime

    @property
    def duration_sec(self) -> int:
        return self.split.total_sec


def parse_hhmm(value: str) -> tuple[int, int]:
    hours, minutes = value.split(":", 1)
    return int(hours), int(minutes)


@lru_cache(maxsize=32)
def _load_timezone(tz_name: str) -> ZoneInfo:
    return ZoneInfo(tz_name)


def _to_named_timezone(ts: datetime, tz_name: str) -> datetime:
    if ts.tzinfo is None:
        return ts
    return ts.astimezone(_load_timezone(tz_name))


def align_timezone(ts: datetime, reference: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Return ``ts`` with the same awareness as ``reference``.

    Naive values are wall-clock times in the reference timezone ``tz_name``.
    """
    if (ts.tzinfo is None) == (reference.tzinfo is None):
        return ts
    tz = _load_timezone(tz_name)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz)
    return ts.astimezone(tz).replace(tzinfo=None)


def to_business_time(ts: datetime, tz_name: str = DEFAULT_TIMEZONE) -> datetime:
    """Aware datetime in the reference timezone; naive input is read as wall-clock time there."""
    tz = _load_timezone(tz_name)
    if ts.tzinfo is None:
        return ts.replace(tzinfo=tz)
    return ts.astimezone(tz)


def cutover_for(
    start: datetime,
    hour: int = 18,
    minute: int = 0,
    tz_name: str = DEFAULT_TIMEZONE,
) -> datetime:
    """Cut-over instant on the calendar date of ``start`` in the reference timezone.

    Only the start date is used, so a session running past midnight never meets
    a second cut-over.
    """
    local_start = _to_named_timezone(start, tz_name)
    local_cutover = datetime.combine(local_start.date(), time(hour, minute), tzinfo=local_start.tzinfo)
    if start.tzinfo is None:
        return local_cutover
    return local_cutover.astimezone(start.tzinfo)


def duration_seconds(start: datetime, end: datetime) -> int:
    return max(0, (end - start) // _ONE_SECOND)


def split_duration(start: datetime, end: datetime, cutover: datetime) -> DurationSplit:
    total = duration_seconds(start, end)
    if total == 0:
        return DurationSplit(before_sec=0, after_sec=0, overlaps=False)
    if end <= cutover:
        return DurationSplit(before_sec=total, after_sec=0, overlaps=False)
    if start >= cutover:
        return DurationSplit(before_sec=0, after_sec=total, overlaps=False)
    before = min(total, duration_seconds(start, cutover))
    return DurationSplit(before_sec=before, after_sec=total - before, overlaps=True)


def _quantize(value: Decimal) -> Decimal:
    return value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def amount_for(duration_sec: int, plan: RatePlan) -> Decimal:
    # Rounded once on the final amount, never per second or per minute.
    unit_seconds = UNIT_SECONDS.get(plan.unit, UNIT_SECONDS["hour"])
    raw = Decimal(max(0, int(duration_sec))) * plan.amount / Decimal(unit_seconds)
    return _quantize(raw)


def _cutover_label(policy: DualRatePolicy, before: bool) -> str:
    clock = f"{policy.cutover_hour:02d}:{policy.cutover_minute:02d}"
    return f"Before {clock}" if before else f"From {clock}"


def _sub_period(
    label: str,
    start: datetime,
    end: datetime,
    duration_sec: int,
    plan: RatePlan,
) -> SubPeriod:
    return SubPeriod(
        label=label,
        start_time=start,
        end_time=end,
        duration_sec=duration_sec,
        rate_name=plan.name,
        rate=plan.amount,
        unit=plan.unit,
        amount=amount_for(duration_sec, plan),
    )


def compose(
    policy: DualRatePolicy,
    start: datetime,
    end: datetime,
    tz_name: str = DEFAULT_TIMEZONE,
) -> ComposeResult:
    end = align_timezone(end, start, tz_name)
    effective_end = end if end > start else start

    if not policy.enabled or policy.secondary is None:
        total = duration_seconds(start, effective_end)
        breakdown = [_sub_period(FULL_SESSION_LABEL, start, effective_end, total, policy.primary)]
        split = DurationSplit(before_sec=total, after_sec=0, overlaps=False)
    else:
        cutover = cutover_for(start, policy.cutover_hour, policy.cutover_minute, tz_name)
        split = split_duration(start, effective_end, cutover)
        breakdown = []
        if split.before_sec > 0:
            breakdown.append(
                _sub_period(
                    _cutover_label(policy, before=True),
                    start,
                    min(effective_end, cutover),
                    split.before_sec,
                    policy.primary,
                )
            )
        if split.after_sec > 0:
            breakdown.append(
                _sub_period(
                    _cutover_label(policy, before=False),
                    max(start, cutover),
                    effective_end,
                    split.after_sec,
                    policy.secondary,
                )
            )
        if not breakdown:
            starts_after = start >= cutover
            breakdown.append(
                _sub_period(
                    _cutover_label(policy, before=not starts_after),
                    start,
                    effective_end,
                    0,
                    policy.secondary if starts_after else policy.primary,
                )
            )

    game_amount = sum((item.amount for item in breakdown), Decimal("0"))
    return ComposeResult(game_amount=game_amount, breakdown=breakdown, split=split, end_time=effective_end)


def policy_from_snapshot(rate_plan: dict[str, Any] | None, dual_rate_policy: dict[str, Any] | None) -> DualRatePolicy:
    if dual_rate_policy:
        return DualRatePolicy.model_validate(dual_rate_policy)
    return DualRatePolicy(primary=RatePlan.model_validate(rate_plan or {}))


def preview(session: SessionRates, now: datetime, tz_name: str = DEFAULT_TIMEZONE) -> ComposeResult:
    policy = policy_from_snapshot(session.rate_plan, session.dual_rate_policy)
    return compose(policy, session.start_time, now, tz_name)


def preview_amount(session: SessionRates, now: datetime, tz_name: str = DEFAULT_TIMEZONE) -> Decimal:
    return preview(session, now, tz_name).game_amount
