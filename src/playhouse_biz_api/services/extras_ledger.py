from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Protocol

from loguru import logger

from playhouse_biz_api.schemas.billing import ExtraLineItem, ExtraLineResult, normalize_money
from playhouse_biz_api.services.errors import PersistenceFailure


@dataclass(frozen=True)
class CatalogProduct:
    id: int
    name: str
    unit_price: Decimal


@dataclass
class ExtrasResult:
    total: Decimal = Decimal("0")
    detail: list[ExtraLineResult] = field(default_factory=list)
    # unknown product or quantity <= 0
    dropped: list[ExtraLineItem] = field(default_factory=list)
    # accepted but the charge record could not be written
    unrecorded: list[ExtraLineResult] = field(default_factory=list)


class ChargeRecorder(Protocol):
    async def record_charge(self, session_id: int, line: ExtraLineResult) -> None:
        ...


class InMemoryChargeRecorder:
    def __init__(self) -> None:
        self.charges: list[tuple[int, ExtraLineResult]] = []

    async def record_charge(self, session_id: int, line: ExtraLineResult) -> None:
        self.charges.append((session_id, line))


class ExtrasLedger:
    """Prices extras selections against the catalog and records one charge per accepted line."""

    def __init__(self, recorder: ChargeRecorder) -> None:
        self.recorder = recorder

    async def price(
        self,
        session_id: int,
        lines: Iterable[ExtraLineItem],
        catalog: Mapping[int, CatalogProduct],
    ) -> ExtrasResult:
        result = ExtrasResult()
        for line in lines:
            product = catalog.get(line.product_id)
            if product is None or line.quantity <= 0:
                logger.info(
                    "extras_ledger.drop session_id={} product_id={} quantity={} reason={}",
                    session_id,
                    line.product_id,
                    line.quantity,
                    "product_not_found" if product is None else "invalid_quantity",
                )
                result.dropped.append(line)
                continue

            unit_price = normalize_money(product.unit_price)
            accepted = ExtraLineResult(
                product_id=product.id,
                name=product.name,
                unit_price=unit_price,
                quantity=line.quantity,
                line_total=unit_price * line.quantity,
            )
            try:
                await self.recorder.record_charge(session_id, accepted)
            except PersistenceFailure as exc:
                logger.warning(
                    "extras_ledger.record_failed session_id={} product_id={} error={}",
                    session_id,
                    product.id,
                    exc,
                )
                result.unrecorded.append(accepted)
                continue

            result.detail.append(accepted)
            result.total += accepted.line_total

        logger.info(
            "extras_ledger.priced session_id={} accepted={} dropped={} unrecorded={} total={}",
            session_id,
            len(result.detail),
            len(result.dropped),
            len(result.unrecorded),
            str(result.total),
        )
        return result
