from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import datetime
from decimal import Decimal
from pathlib import Path

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from playhouse_biz_api.api.deps import get_clock
from playhouse_biz_api.db.base import Base
from playhouse_biz_api.db.models import Game, GamePrice, LoungeUser, Product
from playhouse_biz_api.db.session import build_engine, get_db_session
from playhouse_biz_api.main import app


class FrozenClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture(scope="function")
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 2, 1, 19, 0, 0))


@pytest.fixture(scope="function")
async def engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    database_url = os.getenv("POS_TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'pos_test.db'}"
    test_engine = build_engine(database_url)
    try:
        async with test_engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    except Exception as exc:
        await test_engine.dispose()
        pytest.skip(f"POS integration tests skipped: cannot prepare test DB ({exc})")

    yield test_engine

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest.fixture(scope="function")
def session_maker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


@pytest.fixture(scope="function")
async def db_session(session_maker: async_sessionmaker[AsyncSession]) -> AsyncGenerator[AsyncSession, None]:
    async with session_maker() as session:
        yield session


@pytest.fixture(scope="function")
async def lounge(db_session: AsyncSession) -> dict[str, int]:
    """One player, a two-tier game and two products."""
    user = LoungeUser(name="Aarav", phone="9000000001", is_active=True)
    game = Game(
        name="Cricket",
        is_active=True,
        prices=[
            GamePrice(name="Standard", amount=Decimal("1000"), unit="hour"),
            GamePrice(name="Evening", amount=Decimal("2000"), unit="hour"),
        ],
    )
    water = Product(name="Water", price=Decimal("50"), is_active=True)
    chips = Product(name="Chips", price=Decimal("60"), is_active=True)
    db_session.add_all([user, game, water, chips])
    await db_session.commit()
    return {"user_id": user.id, "game_id": game.id, "water_id": water.id, "chips_id": chips.id}


@pytest.fixture(scope="function")
async def async_client(db_session: AsyncSession, clock: FrozenClock) -> AsyncGenerator[AsyncClient, None]:
    async def _override_get_db_session() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db_session] = _override_get_db_session
    app.dependency_overrides[get_clock] = lambda: clock
    try:
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as client:
            yield client
    finally:
        app.dependency_overrides.clear()
