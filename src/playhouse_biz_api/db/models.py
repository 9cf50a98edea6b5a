from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from playhouse_biz_api.db.base import Base, JSONType


def _utcnow_utc() -> datetime:
    return datetime.now(UTC)


class LoungeUser(Base):
    __tablename__ = "lounge_users"
    __table_args__ = ({"comment": "Lounge customers"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="Primary key")
    name: Mapped[str] = mapped_column(String(128), index=True, comment="Display name")
    phone: Mapped[str | None] = mapped_column(String(32), nullable=True, comment="Phone number")
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, comment="Email address")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, comment="Whether the user can start sessions")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="Created at")


class Game(Base):
    __tablename__ = "games"
    __table_args__ = ({"comment": "Games offered by the lounge"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="Primary key")
    name: Mapped[str] = mapped_column(String(128), unique=True, index=True, comment="Game name")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, comment="Whether the game is bookable")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="Created at")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow_utc, onupdate=_utcnow_utc, comment="Updated at"
    )
    prices: Mapped[list["GamePrice"]] = relationship(
        back_populates="game", cascade="all, delete-orphan", order_by="GamePrice.id"
    )


class GamePrice(Base):
    __tablename__ = "game_prices"
    __table_args__ = ({"comment": "Pricing tiers of a game"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="Primary key")
    game_id: Mapped[int] = mapped_column(
        ForeignKey("games.id", ondelete="CASCADE"), index=True, comment="Owning game ID"
    )
    name: Mapped[str] = mapped_column(String(64), comment="Tier name, e.g. Hourly")
    amount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), comment="Rate per unit")
    unit: Mapped[str] = mapped_column(String(16), default="hour", comment="Rate unit (hour/30min)")
    game: Mapped["Game"] = relationship(back_populates="prices")


class Product(Base):
    __tablename__ = "products"
    __table_args__ = ({"comment": "Snacks and drinks sold alongside sessions"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="Primary key")
    name: Mapped[str] = mapped_column(String(128), comment="Product name")
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0.00"), comment="Unit price")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True, comment="Soft delete flag")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="Created at")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow_utc, onupdate=_utcnow_utc, comment="Updated at"
    )


class GameSession(Base):
    __tablename__ = "game_sessions"
    __table_args__ = ({"comment": "Timed play sessions"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="Primary key")
    user_id: Mapped[int] = mapped_column(ForeignKey("lounge_users.id"), index=True, comment="Player ID")
    game_id: Mapped[int] = mapped_column(ForeignKey("games.id"), index=True, comment="Game ID")
    game_name: Mapped[str] = mapped_column(String(128), comment="Game name at session start")

    start_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), index=True, comment="Start time")
    end_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, comment="End time")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True, comment="Active until closed")

    rate_plan: Mapped[dict] = mapped_column(JSONType, default=dict, comment="Rate plan snapshot")
    dual_rate_policy: Mapped[dict] = mapped_column(JSONType, default=dict, comment="Dual-rate policy snapshot")
    bill_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True, comment="Grand total")
    bill_details: Mapped[dict | None] = mapped_column(JSONType, nullable=True, comment="Bill snapshot JSON")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="Created at")
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow_utc, onupdate=_utcnow_utc, comment="Updated at"
    )
    user: Mapped["LoungeUser"] = relationship()
    charges: Mapped[list["SessionCharge"]] = relationship(
        back_populates="session", cascade="all, delete-orphan", order_by="SessionCharge.id"
    )


class SessionCharge(Base):
    __tablename__ = "session_charges"
    __table_args__ = ({"comment": "Extras charged to a session"},)

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True, comment="Primary key")
    session_id: Mapped[int] = mapped_column(
        ForeignKey("game_sessions.id", ondelete="CASCADE"), index=True, comment="Session ID"
    )
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), index=True, comment="Product ID")
    product_name: Mapped[str] = mapped_column(String(128), comment="Product name at charge time")
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), comment="Unit price at charge time")
    quantity: Mapped[int] = mapped_column(Integer, comment="Quantity")
    line_total: Mapped[Decimal] = mapped_column(Numeric(10, 2), comment="unit_price * quantity")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow_utc, comment="Created at")
    session: Mapped["GameSession"] = relationship(back_populates="charges")
