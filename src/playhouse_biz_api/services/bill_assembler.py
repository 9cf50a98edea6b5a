from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from datetime import datetime
from typing import Protocol

from loguru import logger

from playhouse_biz_api.db.models import GameSession
from playhouse_biz_api.schemas.billing import BillSnapshot, ExtraLineItem, ExtraLineResult
from playhouse_biz_api.services.billing_engine import (
    DEFAULT_TIMEZONE,
    ComposeResult,
    compose,
    policy_from_snapshot,
)
from playhouse_biz_api.services.errors import BillingError, PersistenceFailure, SessionNotActive, SessionNotFound
from playhouse_biz_api.services.extras_ledger import CatalogProduct, ExtrasLedger, ExtrasResult


class BillStore(Protocol):
    async def get_session(self, session_id: int) -> GameSession | None:
        ...

    async def load_catalog(self, product_ids: Iterable[int] | None = None) -> dict[int, CatalogProduct]:
        ...

    async def record_charge(self, session_id: int, line: ExtraLineResult) -> None:
        ...

    async def mark_closed(self, session_id: int, end_time: datetime, snapshot: BillSnapshot) -> bool:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


def assemble_snapshot(
    start_time: datetime,
    composed: ComposeResult,
    extras: ExtrasResult,
    has_dual_pricing: bool,
) -> BillSnapshot:
    return BillSnapshot(
        start_time=start_time,
        end_time=composed.end_time,
        duration_sec=composed.duration_sec,
        game_amount=composed.game_amount,
        breakdown=composed.breakdown,
        extras_total=extras.total,
        extras_detail=extras.detail,
        grand_total=composed.game_amount + extras.total,
        has_dual_pricing=has_dual_pricing,
        overlaps_cutover=composed.split.overlaps,
        duration_before_cutover_sec=composed.split.before_sec,
        duration_after_cutover_sec=composed.split.after_sec,
    )


async def close_session(
    store: BillStore,
    session_id: int,
    extras: Iterable[ExtraLineItem],
    *,
    now: Callable[[], datetime],
    end_time_override: datetime | None = None,
    catalog: Mapping[int, CatalogProduct] | None = None,
    tz_name: str = DEFAULT_TIMEZONE,
) -> BillSnapshot:
    """Bill an active session and close it in one transaction.

    Either the session ends up closed with its snapshot and every accepted extras
    charge, or nothing is written and the session stays active.
    """
    extras = list(extras)
    try:
        row = await store.get_session(session_id)
        if row is None:
            raise SessionNotFound(session_id)
        if not row.is_active:
            logger.warning("close_session.not_active session_id={}", session_id)
            raise SessionNotActive(session_id)

        start_time = row.start_time
        end_time = end_time_override or now()
        policy = policy_from_snapshot(row.rate_plan, row.dual_rate_policy)
        composed = compose(policy, start_time, end_time, tz_name)

        if catalog is None:
            catalog = await store.load_catalog(line.product_id for line in extras)

        extras_result = await ExtrasLedger(store).price(session_id, extras, catalog)
        if extras_result.unrecorded:
            raise PersistenceFailure(
                f"{len(extras_result.unrecorded)} extras line(s) could not be recorded for session {session_id}"
            )

        snapshot = assemble_snapshot(start_time, composed, extras_result, policy.enabled)
        if not await store.mark_closed(session_id, composed.end_time, snapshot):
            raise SessionNotActive(session_id)
        await store.commit()
    except BillingError as exc:
        logger.warning("close_session.rollback session_id={} error={}", session_id, exc)
        await store.rollback()
        raise

    logger.info(
        "close_session.closed session_id={} duration_sec={} game_amount={} extras_total={} grand_total={}",
        session_id,
        snapshot.duration_sec,
        str(snapshot.game_amount),
        str(snapshot.extras_total),
        str(snapshot.grand_total),
    )
    return snapshot
