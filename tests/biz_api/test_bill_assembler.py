from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from playhouse_biz_api.db.models import GameSession, SessionCharge
from playhouse_biz_api.repositories.sessions import SessionStore
from playhouse_biz_api.schemas.billing import (
    BillSnapshot,
    DualRatePolicy,
    ExtraLineItem,
    ExtraLineResult,
    RatePlan,
    load_bill_snapshot,
)
from playhouse_biz_api.services.bill_assembler import close_session
from playhouse_biz_api.services.billing_engine import preview
from playhouse_biz_api.services.errors import PersistenceFailure, SessionNotActive, SessionNotFound

START = datetime(2026, 2, 1, 17, 30, 0)
END = datetime(2026, 2, 1, 18, 30, 0)


def _fixed(ts: datetime) -> Callable[[], datetime]:
    return lambda: ts


async def _open_session(db: AsyncSession, lounge: dict[str, int], start: datetime = START) -> GameSession:
    primary = RatePlan(name="Standard", amount=Decimal("1000"), unit="hour")
    policy = DualRatePolicy(
        enabled=True,
        primary=primary,
        secondary=RatePlan(name="Evening", amount=Decimal("2000"), unit="hour"),
    )
    row = GameSession(
        user_id=lounge["user_id"],
        game_id=lounge["game_id"],
        game_name="Cricket",
        start_time=start,
        is_active=True,
        rate_plan=primary.model_dump(mode="json"),
        dual_rate_policy=policy.model_dump(mode="json"),
    )
    db.add(row)
    await db.commit()
    return row


async def _charge_count(db: AsyncSession, session_id: int) -> int:
    stmt = select(func.count()).select_from(SessionCharge).where(SessionCharge.session_id == session_id)
    return int((await db.execute(stmt)).scalar_one())


class FailingStore(SessionStore):
    def __init__(self, session: AsyncSession, failing_product_ids: set[int]) -> None:
        super().__init__(session)
        self.failing_product_ids = failing_product_ids

    async def record_charge(self, session_id: int, line: ExtraLineResult) -> None:
        if line.product_id in self.failing_product_ids:
            raise PersistenceFailure(f"cannot record product {line.product_id}")
        await super().record_charge(session_id, line)


class RacingStore(SessionStore):
    """Lets another cashier close the session right after this one has read it as active."""

    def __init__(self, session: AsyncSession, session_maker: async_sessionmaker[AsyncSession]) -> None:
        super().__init__(session)
        self.session_maker = session_maker

    async def get_session(self, session_id: int) -> GameSession | None:
        row = await super().get_session(session_id)
        async with self.session_maker() as other:
            await close_session(SessionStore(other), session_id, [], now=_fixed(END))
        return row


@pytest.mark.anyio
async def test_close_persists_snapshot_and_charges(db_session: AsyncSession, lounge: dict[str, int]) -> None:
    row = await _open_session(db_session, lounge)
    extras = [
        ExtraLineItem(product_id=lounge["water_id"], quantity=3),
        ExtraLineItem(product_id=9999, quantity=1),
    ]

    snapshot = await close_session(SessionStore(db_session), row.id, extras, now=_fixed(END))
    assert snapshot.game_amount == Decimal("1500")
    assert snapshot.extras_total == Decimal("150")
    assert snapshot.grand_total == Decimal("1650")
    assert snapshot.overlaps_cutover is True
    assert len(snapshot.extras_detail) == 1

    stored = await SessionStore(db_session).get_session(row.id)
    assert stored is not None
    assert stored.is_active is False
    assert stored.end_time == END
    assert stored.bill_amount == Decimal("1650")
    assert load_bill_snapshot(stored.bill_details) == snapshot

    charges = (await db_session.execute(select(SessionCharge).where(SessionCharge.session_id == row.id))).scalars().all()
    assert [(item.product_name, item.quantity, item.line_total) for item in charges] == [
        ("Water", 3, Decimal("150")),
    ]


@pytest.mark.anyio
async def test_second_close_is_rejected_without_mutation(db_session: AsyncSession, lounge: dict[str, int]) -> None:
    row = await _open_session(db_session, lounge)
    first = await close_session(
        SessionStore(db_session),
        row.id,
        [ExtraLineItem(product_id=lounge["chips_id"], quantity=1)],
        now=_fixed(END),
    )

    with pytest.raises(SessionNotActive):
        await close_session(
            SessionStore(db_session),
            row.id,
            [ExtraLineItem(product_id=lounge["water_id"], quantity=5)],
            now=_fixed(datetime(2026, 2, 1, 22, 0, 0)),
        )

    stored = await SessionStore(db_session).get_session(row.id)
    assert load_bill_snapshot(stored.bill_details) == first
    assert stored.end_time == END
    assert await _charge_count(db_session, row.id) == 1


@pytest.mark.anyio
async def test_close_unknown_session(db_session: AsyncSession) -> None:
    with pytest.raises(SessionNotFound):
        await close_session(SessionStore(db_session), 4242, [], now=_fixed(END))


@pytest.mark.anyio
async def test_failed_charge_keeps_session_active(db_session: AsyncSession, lounge: dict[str, int]) -> None:
    row = await _open_session(db_session, lounge)
    store = FailingStore(db_session, failing_product_ids={lounge["chips_id"]})

    with pytest.raises(PersistenceFailure):
        await close_session(
            store,
            row.id,
            [
                ExtraLineItem(product_id=lounge["water_id"], quantity=1),
                ExtraLineItem(product_id=lounge["chips_id"], quantity=1),
            ],
            now=_fixed(END),
        )

    stored = await SessionStore(db_session).get_session(row.id)
    assert stored.is_active is True
    assert stored.bill_details is None
    assert await _charge_count(db_session, row.id) == 0


@pytest.mark.anyio
async def test_concurrent_close_first_one_wins(
    db_session: AsyncSession,
    session_maker: async_sessionmaker[AsyncSession],
    lounge: dict[str, int],
) -> None:
    row = await _open_session(db_session, lounge)

    with pytest.raises(SessionNotActive):
        await close_session(
            RacingStore(db_session, session_maker),
            row.id,
            [ExtraLineItem(product_id=lounge["water_id"], quantity=2)],
            now=_fixed(datetime(2026, 2, 1, 19, 0, 0)),
        )

    stored = await SessionStore(db_session).get_session(row.id)
    assert stored.is_active is False
    snapshot = load_bill_snapshot(stored.bill_details)
    assert snapshot.grand_total == Decimal("1500")
    assert snapshot.extras_detail == []
    assert await _charge_count(db_session, row.id) == 0


@pytest.mark.anyio
async def test_preview_matches_closed_amount(db_session: AsyncSession, lounge: dict[str, int]) -> None:
    row = await _open_session(db_session, lounge)
    live = preview(row, END)

    snapshot = await close_session(SessionStore(db_session), row.id, [], now=_fixed(END))
    assert snapshot.game_amount == live.game_amount
    assert snapshot.breakdown == live.breakdown


@pytest.mark.anyio
async def test_end_override_before_start_is_clamped(db_session: AsyncSession, lounge: dict[str, int]) -> None:
    row = await _open_session(db_session, lounge)
    snapshot = await close_session(
        SessionStore(db_session),
        row.id,
        [],
        now=_fixed(END),
        end_time_override=datetime(2026, 2, 1, 17, 0, 0),
    )
    assert snapshot.end_time == START
    assert snapshot.duration_sec == 0
    assert snapshot.grand_total == Decimal("0")


class UnreachableDb:
    """Stands in for an AsyncSession whose connection has gone away."""

    def __init__(self) -> None:
        self.rollbacks = 0

    async def execute(self, *args: object, **kwargs: object) -> None:
        raise OperationalError("SELECT", {}, ConnectionRefusedError("connection refused"))

    async def rollback(self) -> None:
        self.rollbacks += 1


class CloseFailsStore(SessionStore):
    async def mark_closed(self, session_id: int, end_time: datetime, snapshot: BillSnapshot) -> bool:
        raise PersistenceFailure(f"cannot close session {session_id}")


@pytest.mark.anyio
async def test_read_failure_surfaces_as_persistence_failure() -> None:
    db = UnreachableDb()
    store = SessionStore(db)

    with pytest.raises(PersistenceFailure):
        await store.load_catalog([1, 2])
    with pytest.raises(PersistenceFailure):
        await close_session(store, 1, [], now=_fixed(END))
    assert db.rollbacks == 1


@pytest.mark.anyio
async def test_failed_close_update_discards_recorded_charges(db_session: AsyncSession, lounge: dict[str, int]) -> None:
    row = await _open_session(db_session, lounge)

    with pytest.raises(PersistenceFailure):
        await close_session(
            CloseFailsStore(db_session),
            row.id,
            [ExtraLineItem(product_id=lounge["water_id"], quantity=2)],
            now=_fixed(END),
        )

    stored = await SessionStore(db_session).get_session(row.id)
    assert stored.is_active is True
    assert stored.end_time is None
    assert await _charge_count(db_session, row.id) == 0
