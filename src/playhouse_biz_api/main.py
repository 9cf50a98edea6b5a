from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from playhouse_common.observability import TraceContextMiddleware, setup_loguru
from playhouse_biz_api.api.catalog_routes import router as catalog_router
from playhouse_biz_api.api.routes import router as biz_router
from playhouse_biz_api.config import settings
from playhouse_biz_api.db.session import engine

setup_loguru(
    settings.app_name,
    log_to_stdout=settings.log_to_stdout,
    log_to_file=settings.log_to_file,
    log_dir=settings.log_dir,
    level=settings.log_level,
)


@asynccontextmanager
async def lifespan(_: FastAPI) -> AsyncIterator[None]:
    logger.info(
        "app.startup env={} timezone={} cutover={}",
        settings.app_env,
        settings.business_timezone,
        settings.dual_rate_cutover,
    )
    yield
    await engine.dispose()
    logger.info("app.shutdown")


app = FastAPI(
    title=settings.app_name,
    description="Gaming lounge point of sale: sessions, extras and time-of-day billing.",
    lifespan=lifespan,
)
app.add_middleware(TraceContextMiddleware)
app.include_router(biz_router)
app.include_router(catalog_router)


@app.get("/healthz")
async def healthz() -> dict[str, str]:
    return {
        "status": "ok",
        "service": settings.app_name,
        "timezone": settings.business_timezone,
        "cutover": settings.dual_rate_cutover,
    }
