from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from loguru import logger
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from playhouse_biz_api.db.models import Game, GamePrice, LoungeUser, Product
from playhouse_biz_api.db.session import get_db_session
from playhouse_biz_api.schemas.catalog import (
    GameCreateRequest,
    GameResponse,
    ProductCreateRequest,
    ProductResponse,
    ProductUpdateRequest,
    UserCreateRequest,
    UserResponse,
)

router = APIRouter(prefix="/api/v1", tags=["catalog"])


@router.post("/users", response_model=UserResponse, summary="Create user")
async def create_user(
    payload: UserCreateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> LoungeUser:
    logger.info("create_user.request name={}", payload.name)
    user = LoungeUser(**payload.model_dump(), is_active=True)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    logger.info("create_user.response user_id={}", user.id)
    return user


@router.get("/users", response_model=list[UserResponse], summary="List users")
async def list_users(db: AsyncSession = Depends(get_db_session)) -> list[LoungeUser]:
    rows = list((await db.execute(select(LoungeUser).order_by(LoungeUser.id.desc()))).scalars().all())
    logger.info("list_users.response count={}", len(rows))
    return rows


@router.post(
    "/games",
    response_model=GameResponse,
    summary="Create game",
    description="Create a game together with its pricing tiers.",
)
async def create_game(
    payload: GameCreateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Game:
    logger.info("create_game.request payload={}", payload.model_dump(mode="json"))
    existing = (await db.execute(select(Game).where(Game.name == payload.name))).scalar_one_or_none()
    if existing:
        logger.warning("create_game.conflict name={}", payload.name)
        raise HTTPException(status_code=409, detail="Game name already exists")

    game = Game(
        name=payload.name,
        is_active=True,
        prices=[GamePrice(name=item.name, amount=item.amount, unit=item.unit) for item in payload.prices],
    )
    db.add(game)
    await db.commit()
    await db.refresh(game, attribute_names=["prices"])
    logger.info("create_game.response game_id={} tier_count={}", game.id, len(game.prices))
    return game


@router.get("/games", response_model=list[GameResponse], summary="List games")
async def list_games(db: AsyncSession = Depends(get_db_session)) -> list[Game]:
    games = list((await db.execute(select(Game).order_by(Game.id.desc()))).scalars().all())
    for item in games:
        await db.refresh(item, attribute_names=["prices"])
    logger.info("list_games.response count={}", len(games))
    return games


@router.post("/products", response_model=ProductResponse, summary="Create product")
async def create_product(
    payload: ProductCreateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Product:
    logger.info("create_product.request payload={}", payload.model_dump(mode="json"))
    product = Product(name=payload.name, price=payload.price, is_active=True)
    db.add(product)
    await db.commit()
    await db.refresh(product)
    return product


@router.get(
    "/products",
    response_model=list[ProductResponse],
    summary="List products",
    description="Only active (not soft deleted) products are listed.",
)
async def list_products(db: AsyncSession = Depends(get_db_session)) -> list[Product]:
    stmt = select(Product).where(Product.is_active.is_(True)).order_by(Product.id)
    rows = list((await db.execute(stmt)).scalars().all())
    logger.info("list_products.response count={}", len(rows))
    return rows


async def _get_product_or_404(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if not product:
        logger.warning("product.not_found product_id={}", product_id)
        raise HTTPException(status_code=404, detail="Product not found")
    return product


@router.patch("/products/{product_id}", response_model=ProductResponse, summary="Update product")
async def update_product(
    product_id: int,
    payload: ProductUpdateRequest,
    db: AsyncSession = Depends(get_db_session),
) -> Product:
    logger.info("update_product.request product_id={} payload={}", product_id, payload.model_dump(mode="json"))
    product = await _get_product_or_404(db, product_id)
    for key, value in payload.model_dump(exclude_none=True).items():
        setattr(product, key, value)
    await db.commit()
    await db.refresh(product)
    return product


@router.delete(
    "/products/{product_id}",
    response_model=ProductResponse,
    summary="Delete product",
    description="Soft delete: the product stays referenced by past charges but can no longer be sold.",
)
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(get_db_session),
) -> Product:
    logger.info("delete_product.request product_id={}", product_id)
    product = await _get_product_or_404(db, product_id)
    product.is_active = False
    await db.commit()
    await db.refresh(product)
    return product
