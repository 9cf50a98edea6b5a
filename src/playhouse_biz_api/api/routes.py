from __future__ import annotations

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from zoneinfo import ZoneInfo

from fastapi import APIRouter, Depends, HTTPException, Query
from loguru import logger
from sqlalchemy import Select, select
from sqlalchemy.ext.asyncio import AsyncSession

from playhouse_biz_api.api.deps import Clock, get_clock
from playhouse_biz_api.config import settings
from playhouse_biz_api.db.models import Game, GamePrice, GameSession, LoungeUser
from playhouse_biz_api.db.session import get_db_session
from playhouse_biz_api.repositories.sessions import SessionStore
from playhouse_biz_api.schemas.billing import (
    BillingQuoteRequest,
    BillingQuoteResponse,
    BillSnapshot,
    DualRatePolicy,
    RatePlan,
    SessionCloseRequest,
    load_bill_snapshot,
)
from playhouse_biz_api.schemas.receipt import ReceiptData
from playhouse_biz_api.schemas.session import (
    GameSessionResponse,
    SessionLogItem,
    SessionLogSummary,
    SessionPreviewResponse,
    SessionStartRequest,
    SessionStatus,
)
from playhouse_biz_api.services.bill_assembler import assemble_snapshot, close_session
from playhouse_biz_api.services.billing_engine import compose, parse_hhmm, policy_from_snapshot, preview, to_business_time
from playhouse_biz_api.services.errors import PersistenceFailure, SessionNotActive, SessionNotFound
from playhouse_biz_api.services.extras_ledger import ExtrasResult
from playhouse_biz_api.services.receipt import render_receipt_data

router = APIRouter(prefix="/api/v1", tags=["biz-api"])


def _business_time(ts: datetime) -> datetime:
    # Only aware datetimes in the business timezone reach the database.
    return to_business_time(ts, settings.business_timezone)


def _rate_plan_from_tier(tier: GamePrice) -> RatePlan:
    return RatePlan(name=tier.name, amount=tier.amount, unit=tier.unit)


def _pick_tier(prices: list[GamePrice], name: str | None) -> GamePrice | None:
    if not prices:
        return None
    if name is None:
        return prices[0]
    return next((item for item in prices if item.name == name), None)


async def _get_session_or_404(db: AsyncSession, session_id: int) -> GameSession:
    row = await SessionStore(db).get_session(session_id)
    if not row:
        logger.warning("session.not_found session_id={}", session_id)
        raise HTTPException(status_code=404, detail="Session not found")
    return row


def _live_snapshot(row: GameSession, now: datetime) -> BillSnapshot:
    composed = preview(row, now, settings.business_timezone)
    enabled = policy_from_snapshot(row.rate_plan, row.dual_rate_policy).enabled
    return assemble_snapshot(row.start_time, composed, ExtrasResult(), enabled)


def _date_bounds(date_from: date | None, date_to: date | None) -> tuple[datetime | None, datetime | None]:
    tz = ZoneInfo(settings.business_timezone)
    lower = datetime.combine(date_from, time.min, tzinfo=tz) if date_from else None
    upper = datetime.combine(date_to + timedelta(days=1), time.min, tzinfo=tz) if date_to else None
    return lower, upper


def _session_log_stmt(
    game_id: int | None,
    user_id: int | None,
    date_from: date | None,
    date_to: date | None,
    status: SessionStatus | None,
) -> Select[tuple[GameSession, str]]:
    stmt = select(GameSession, LoungeUser.name).join(LoungeUser, LoungeUser.id == GameSession.user_id)
    if game_id is not None:
        stmt = stmt.where(GameSession.game_id == game_id)
    if user_id is not None:
        stmt = stmt.where(GameSession.user_id == user_id)
    lower, upper = _date_bounds(date_from, date_to)
    if lower is not None:
        stmt = stmt.where(GameSession.start_time >= lower)
    if upper is not None:
        stmt = stmt.where(GameSession.start_time < upper)
    if status == "active":
        stmt = stmt.where(GameSession.is_active.is_(True))
    elif status == "completed":
        stmt = stmt.where(GameSession.is_active.is_(False))
    return stmt.order_by(GameSession.start_time.desc(), GameSession.id.desc()).execution_options(
        populate_existing=True
    )


@router.post(
    "/sessions",
    response_model=GameSessionResponse,
    summary="Start session",
    description="Start a session and snapshot the chosen pricing tier(s) by value.",
)
async def start_session(
    payload: SessionStartRequest,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> GameSession:
    logger.info("start_session.request payload={}", payload.model_dump(mode="json"))
    user = await db.get(LoungeUser, payload.user_id)
    if not user or not user.is_active:
        logger.warning("start_session.user_not_found user_id={}", payload.user_id)
        raise HTTPException(status_code=404, detail="User not found")

    game = (await db.execute(select(Game).where(Game.id == payload.game_id))).scalar_one_or_none()
    if not game or not game.is_active:
        logger.warning("start_session.game_not_found game_id={}", payload.game_id)
        raise HTTPException(status_code=404, detail="Game not found")
    await db.refresh(game, attribute_names=["prices"])

    tier = _pick_tier(list(game.prices), payload.price_name)
    if tier is None:
        logger.warning("start_session.tier_not_found game_id={} price_name={}", game.id, payload.price_name)
        raise HTTPException(status_code=404, detail="Pricing tier not found")

    secondary = None
    if payload.after_cutover_price_name is not None:
        secondary_tier = _pick_tier(list(game.prices), payload.after_cutover_price_name)
        if secondary_tier is None:
            logger.warning(
                "start_session.tier_not_found game_id={} price_name={}",
                game.id,
                payload.after_cutover_price_name,
            )
            raise HTTPException(status_code=404, detail="After cut-over pricing tier not found")
        secondary = _rate_plan_from_tier(secondary_tier)

    primary = _rate_plan_from_tier(tier)
    cutover_hour, cutover_minute = parse_hhmm(settings.dual_rate_cutover)
    policy = DualRatePolicy(
        enabled=secondary is not None,
        primary=primary,
        secondary=secondary,
        cutover_hour=cutover_hour,
        cutover_minute=cutover_minute,
    )
    row = GameSession(
        user_id=user.id,
        game_id=game.id,
        game_name=game.name,
        start_time=_business_time(payload.start_time or clock()),
        is_active=True,
        rate_plan=primary.model_dump(mode="json"),
        dual_rate_policy=policy.model_dump(mode="json"),
    )
    db.add(row)
    await db.commit()
    await db.refresh(row)
    logger.info(
        "start_session.response session_id={} game={} rate={} dual_pricing={}",
        row.id,
        row.game_name,
        str(primary.amount),
        policy.enabled,
    )
    return row


@router.get("/sessions", response_model=list[GameSessionResponse], summary="List sessions")
async def list_sessions(
    status: SessionStatus | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> list[GameSession]:
    stmt: Select[tuple[GameSession]] = select(GameSession)
    if status == "active":
        stmt = stmt.where(GameSession.is_active.is_(True))
    elif status == "completed":
        stmt = stmt.where(GameSession.is_active.is_(False))
    stmt = stmt.order_by(GameSession.id.desc()).execution_options(populate_existing=True)
    rows = list((await db.execute(stmt)).scalars().all())
    logger.info("list_sessions.response status={} count={}", status, len(rows))
    return rows


@router.get(
    "/sessions/{session_id}/preview",
    response_model=SessionPreviewResponse,
    summary="Preview session amount",
    description="Running amount at the current time, computed exactly as the final bill would be. Never persists.",
)
async def preview_session(
    session_id: int,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> SessionPreviewResponse:
    row = await _get_session_or_404(db, session_id)
    if not row.is_active:
        snapshot = load_bill_snapshot(row.bill_details)
        if snapshot is None:
            raise HTTPException(status_code=409, detail="Closed session has no bill snapshot")
        return SessionPreviewResponse(
            session_id=row.id,
            is_active=False,
            as_of=snapshot.end_time,
            duration_sec=snapshot.duration_sec,
            game_amount=snapshot.game_amount,
            breakdown=snapshot.breakdown,
            overlaps_cutover=snapshot.overlaps_cutover,
        )

    now = clock()
    composed = preview(row, now, settings.business_timezone)
    logger.info(
        "preview_session.response session_id={} duration_sec={} game_amount={}",
        row.id,
        composed.duration_sec,
        str(composed.game_amount),
    )
    return SessionPreviewResponse(
        session_id=row.id,
        is_active=True,
        as_of=now,
        duration_sec=composed.duration_sec,
        game_amount=composed.game_amount,
        breakdown=composed.breakdown,
        overlaps_cutover=composed.split.overlaps,
    )


@router.post(
    "/sessions/{session_id}/close",
    response_model=BillSnapshot,
    summary="Close session",
    description="Bill the session with its snapshotted rates plus extras, and close it. Not idempotent.",
)
async def close_game_session(
    session_id: int,
    payload: SessionCloseRequest,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> BillSnapshot:
    logger.info("close_session.request session_id={} payload={}", session_id, payload.model_dump(mode="json"))
    try:
        snapshot = await close_session(
            SessionStore(db),
            session_id,
            payload.extras,
            now=clock,
            end_time_override=_business_time(payload.end_time) if payload.end_time else None,
            tz_name=settings.business_timezone,
        )
    except SessionNotFound:
        logger.warning("close_session.not_found session_id={}", session_id)
        raise HTTPException(status_code=404, detail="Session not found")
    except SessionNotActive:
        raise HTTPException(status_code=409, detail="Session is not active")
    except PersistenceFailure as exc:
        logger.error("close_session.persistence_failure session_id={} error={}", session_id, exc)
        raise HTTPException(status_code=503, detail="Could not save the bill; the session is still active")
    return snapshot


@router.get(
    "/sessions/{session_id}/receipt",
    response_model=ReceiptData,
    summary="Session receipt",
    description="Printable bill. Active sessions get a current-bill receipt that is not persisted.",
)
async def get_session_receipt(
    session_id: int,
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> ReceiptData:
    row = await _get_session_or_404(db, session_id)
    if row.is_active:
        snapshot = _live_snapshot(row, clock())
    else:
        snapshot = load_bill_snapshot(row.bill_details)
        if snapshot is None:
            raise HTTPException(status_code=409, detail="Closed session has no bill snapshot")
    user = await db.get(LoungeUser, row.user_id)
    return render_receipt_data(snapshot, player_name=user.name if user else None, game_name=row.game_name)


@router.post(
    "/billing/quote",
    response_model=BillingQuoteResponse,
    summary="Quote",
    description="Cost calculator: price an interval under a rate policy without creating a session.",
)
async def quote_billing(payload: BillingQuoteRequest) -> BillingQuoteResponse:
    logger.info("quote_billing.request payload={}", payload.model_dump(mode="json"))
    composed = compose(
        payload.policy,
        _business_time(payload.start_time),
        _business_time(payload.end_time),
        settings.business_timezone,
    )
    return BillingQuoteResponse(
        duration_sec=composed.duration_sec,
        game_amount=composed.game_amount,
        breakdown=composed.breakdown,
        overlaps_cutover=composed.split.overlaps,
        duration_before_cutover_sec=composed.split.before_sec,
        duration_after_cutover_sec=composed.split.after_sec,
    )


@router.get(
    "/session-logs",
    response_model=list[SessionLogItem],
    summary="Session logs",
    description="Filter sessions by game, user, start date range and status.",
)
async def list_session_logs(
    game_id: int | None = Query(default=None),
    user_id: int | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    status: SessionStatus | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
    clock: Clock = Depends(get_clock),
) -> list[SessionLogItem]:
    logger.info(
        "list_session_logs.request game_id={} user_id={} date_from={} date_to={} status={}",
        game_id,
        user_id,
        date_from,
        date_to,
        status,
    )
    rows = (await db.execute(_session_log_stmt(game_id, user_id, date_from, date_to, status))).all()
    now = clock()
    items: list[SessionLogItem] = []
    for row, user_name in rows:
        snapshot = load_bill_snapshot(row.bill_details)
        if snapshot is None:
            snapshot = _live_snapshot(row, now)
        items.append(
            SessionLogItem(
                id=row.id,
                user_id=row.user_id,
                user_name=user_name,
                game_id=row.game_id,
                game_name=row.game_name,
                start_time=row.start_time,
                end_time=row.end_time,
                is_active=row.is_active,
                duration_sec=snapshot.duration_sec,
                price=snapshot.grand_total,
                bill_details=None if row.is_active else snapshot,
            )
        )
    logger.info("list_session_logs.response count={}", len(items))
    return items


@router.get(
    "/session-logs/summary",
    response_model=SessionLogSummary,
    summary="Session report",
    description="Counts and revenue of closed sessions for the same filters as the session logs.",
)
async def summarize_session_logs(
    game_id: int | None = Query(default=None),
    user_id: int | None = Query(default=None),
    date_from: date | None = Query(default=None),
    date_to: date | None = Query(default=None),
    status: SessionStatus | None = Query(default=None),
    db: AsyncSession = Depends(get_db_session),
) -> SessionLogSummary:
    rows = (await db.execute(_session_log_stmt(game_id, user_id, date_from, date_to, status))).all()
    sessions = [row for row, _ in rows]
    completed = [row for row in sessions if not row.is_active]
    revenue = Decimal("0")
    for row in completed:
        snapshot = load_bill_snapshot(row.bill_details)
        if snapshot is not None:
            revenue += snapshot.grand_total
    summary = SessionLogSummary(
        total_sessions=len(sessions),
        active_sessions=len(sessions) - len(completed),
        completed_sessions=len(completed),
        total_revenue=revenue,
    )
    logger.info("summarize_session_logs.response summary={}", summary.model_dump(mode="json"))
    return summary
