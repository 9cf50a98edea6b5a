"""init pos schema

Revision ID: 20261019_0001_pos
Revises:
Create Date: 2026-10-19 10:00:00

"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261019_0001_pos"
down_revision = None
branch_labels = None
depends_on = None


def _json_type() -> sa.types.TypeEngine:
    return sa.JSON().with_variant(postgresql.JSONB(astext_type=sa.Text()), "postgresql")


def upgrade() -> None:
    op.create_table(
        "lounge_users",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="Primary key"),
        sa.Column("name", sa.String(length=128), nullable=False, comment="Display name"),
        sa.Column("phone", sa.String(length=32), nullable=True, comment="Phone number"),
        sa.Column("email", sa.String(length=255), nullable=True, comment="Email address"),
        sa.Column("is_active", sa.Boolean(), nullable=False, comment="Whether the user can start sessions"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="Created at"),
        sa.PrimaryKeyConstraint("id"),
        comment="Lounge customers",
    )
    op.create_index(op.f("ix_lounge_users_name"), "lounge_users", ["name"], unique=False)

    op.create_table(
        "games",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="Primary key"),
        sa.Column("name", sa.String(length=128), nullable=False, comment="Game name"),
        sa.Column("is_active", sa.Boolean(), nullable=False, comment="Whether the game is bookable"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="Created at"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, comment="Updated at"),
        sa.PrimaryKeyConstraint("id"),
        comment="Games offered by the lounge",
    )
    op.create_index(op.f("ix_games_name"), "games", ["name"], unique=True)

    op.create_table(
        "game_prices",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="Primary key"),
        sa.Column("game_id", sa.Integer(), nullable=False, comment="Owning game ID"),
        sa.Column("name", sa.String(length=64), nullable=False, comment="Tier name, e.g. Hourly"),
        sa.Column("amount", sa.Numeric(precision=10, scale=2), nullable=False, comment="Rate per unit"),
        sa.Column("unit", sa.String(length=16), nullable=False, comment="Rate unit (hour/30min)"),
        sa.ForeignKeyConstraint(["game_id"], ["games.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        comment="Pricing tiers of a game",
    )
    op.create_index(op.f("ix_game_prices_game_id"), "game_prices", ["game_id"], unique=False)

    op.create_table(
        "products",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="Primary key"),
        sa.Column("name", sa.String(length=128), nullable=False, comment="Product name"),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=False, comment="Unit price"),
        sa.Column("is_active", sa.Boolean(), nullable=False, comment="Soft delete flag"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="Created at"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, comment="Updated at"),
        sa.PrimaryKeyConstraint("id"),
        comment="Snacks and drinks sold alongside sessions",
    )
    op.create_index(op.f("ix_products_is_active"), "products", ["is_active"], unique=False)

    op.create_table(
        "game_sessions",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="Primary key"),
        sa.Column("user_id", sa.Integer(), nullable=False, comment="Player ID"),
        sa.Column("game_id", sa.Integer(), nullable=False, comment="Game ID"),
        sa.Column("game_name", sa.String(length=128), nullable=False, comment="Game name at session start"),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False, comment="Start time"),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=True, comment="End time"),
        sa.Column("is_active", sa.Boolean(), nullable=False, comment="Active until closed"),
        sa.Column("rate_plan", _json_type(), nullable=False, comment="Rate plan snapshot"),
        sa.Column("dual_rate_policy", _json_type(), nullable=False, comment="Dual-rate policy snapshot"),
        sa.Column("bill_amount", sa.Numeric(precision=10, scale=2), nullable=True, comment="Grand total"),
        sa.Column("bill_details", _json_type(), nullable=True, comment="Bill snapshot JSON"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="Created at"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, comment="Updated at"),
        sa.ForeignKeyConstraint(["user_id"], ["lounge_users.id"]),
        sa.ForeignKeyConstraint(["game_id"], ["games.id"]),
        sa.PrimaryKeyConstraint("id"),
        comment="Timed play sessions",
    )
    op.create_index(op.f("ix_game_sessions_user_id"), "game_sessions", ["user_id"], unique=False)
    op.create_index(op.f("ix_game_sessions_game_id"), "game_sessions", ["game_id"], unique=False)
    op.create_index(op.f("ix_game_sessions_start_time"), "game_sessions", ["start_time"], unique=False)
    op.create_index(op.f("ix_game_sessions_is_active"), "game_sessions", ["is_active"], unique=False)

    op.create_table(
        "session_charges",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False, comment="Primary key"),
        sa.Column("session_id", sa.Integer(), nullable=False, comment="Session ID"),
        sa.Column("product_id", sa.Integer(), nullable=False, comment="Product ID"),
        sa.Column("product_name", sa.String(length=128), nullable=False, comment="Product name at charge time"),
        sa.Column("unit_price", sa.Numeric(precision=10, scale=2), nullable=False, comment="Unit price at charge time"),
        sa.Column("quantity", sa.Integer(), nullable=False, comment="Quantity"),
        sa.Column("line_total", sa.Numeric(precision=10, scale=2), nullable=False, comment="unit_price * quantity"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, comment="Created at"),
        sa.ForeignKeyConstraint(["session_id"], ["game_sessions.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["product_id"], ["products.id"]),
        sa.PrimaryKeyConstraint("id"),
        comment="Extras charged to a session",
    )
    op.create_index(op.f("ix_session_charges_session_id"), "session_charges", ["session_id"], unique=False)
    op.create_index(op.f("ix_session_charges_product_id"), "session_charges", ["product_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_session_charges_product_id"), table_name="session_charges")
    op.drop_index(op.f("ix_session_charges_session_id"), table_name="session_charges")
    op.drop_table("session_charges")

    op.drop_index(op.f("ix_game_sessions_is_active"), table_name="game_sessions")
    op.drop_index(op.f("ix_game_sessions_start_time"), table_name="game_sessions")
    op.drop_index(op.f("ix_game_sessions_game_id"), table_name="game_sessions")
    op.drop_index(op.f("ix_game_sessions_user_id"), table_name="game_sessions")
    op.drop_table("game_sessions")

    op.drop_index(op.f("ix_products_is_active"), table_name="products")
    op.drop_table("products")

    op.drop_index(op.f("ix_game_prices_game_id"), table_name="game_prices")
    op.drop_table("game_prices")

    op.drop_index(op.f("ix_games_name"), table_name="games")
    op.drop_table("games")

    op.drop_index(op.f("ix_lounge_users_name"), table_name="lounge_users")
    op.drop_table("lounge_users")
