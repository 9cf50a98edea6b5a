from __future__ import annotations

from collections.abc import Iterable
from datetime import UTC, datetime

from loguru import logger
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from playhouse_biz_api.db.models import GameSession, Product, SessionCharge
from playhouse_biz_api.schemas.billing import BillSnapshot, ExtraLineResult, dump_bill_snapshot
from playhouse_biz_api.services.errors import PersistenceFailure
from playhouse_biz_api.services.extras_ledger import CatalogProduct


def _utcnow() -> datetime:
    return datetime.now(UTC)


class SessionStore:
    """Persistence used by the bill assembler; all writes share the caller's transaction."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def get_session(self, session_id: int) -> GameSession | None:
        # Always reload: the close decision must not rest on a stale identity-map copy.
        stmt = (
            select(GameSession)
            .where(GameSession.id == session_id)
            .execution_options(populate_existing=True)
        )
        try:
            return (await self.session.execute(stmt)).scalar_one_or_none()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Failed to load session {session_id}") from exc

    async def load_catalog(self, product_ids: Iterable[int] | None = None) -> dict[int, CatalogProduct]:
        stmt = select(Product).where(Product.is_active.is_(True))
        if product_ids is not None:
            ids = sorted(set(product_ids))
            if not ids:
                return {}
            stmt = stmt.where(Product.id.in_(ids))
        try:
            rows = (await self.session.execute(stmt)).scalars().all()
        except SQLAlchemyError as exc:
            raise PersistenceFailure("Failed to load the product catalog") from exc
        return {row.id: CatalogProduct(id=row.id, name=row.name, unit_price=row.price) for row in rows}

    async def record_charge(self, session_id: int, line: ExtraLineResult) -> None:
        self.session.add(
            SessionCharge(
                session_id=session_id,
                product_id=line.product_id,
                product_name=line.name,
                unit_price=line.unit_price,
                quantity=line.quantity,
                line_total=line.line_total,
            )
        )
        try:
            await self.session.flush()
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Failed to record charge for session {session_id}") from exc

    async def mark_closed(self, session_id: int, end_time: datetime, snapshot: BillSnapshot) -> bool:
        """Active -> Closed. Returns False when the session was no longer active."""
        stmt = (
            update(GameSession)
            .where(GameSession.id == session_id, GameSession.is_active.is_(True))
            .values(
                end_time=end_time,
                is_active=False,
                bill_amount=snapshot.grand_total,
                bill_details=dump_bill_snapshot(snapshot),
                updated_at=_utcnow(),
            )
            .returning(GameSession.id)
            .execution_options(synchronize_session=False)
        )
        try:
            result = await self.session.execute(stmt)
        except SQLAlchemyError as exc:
            raise PersistenceFailure(f"Failed to close session {session_id}") from exc
        closed = result.scalar_one_or_none() is not None
        if not closed:
            logger.warning("session_store.close_conflict session_id={}", session_id)
        return closed

    async def commit(self) -> None:
        try:
            await self.session.commit()
        except SQLAlchemyError as exc:
            await self.session.rollback()
            raise PersistenceFailure("Failed to commit session close") from exc

    async def rollback(self) -> None:
        await self.session.rollback()
