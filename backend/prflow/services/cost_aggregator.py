"""PRFlow — Total estimated cost of a request from its line items."""
import logging
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from prflow.models.purchase_request import LineItem, PurchaseRequest

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def _field(item: Any, name: str) -> Any:
    if isinstance(item, Mapping):
        return item.get(name)
    return getattr(item, name, None)


def _to_decimal(value: Any) -> Decimal:
    """Missing or non-numeric values count as zero."""
    if value is None or isinstance(value, bool):
        return ZERO
    try:
        result = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return ZERO
    if not result.is_finite():
        return ZERO
    return result


def aggregate_cost(items: Iterable[Any]) -> Decimal:
    """
    Sum of required_quantity * estimated_cost over the items, rounded to cents.

    Items may be LineItem rows, schemas or plain mappings.
    """
    total = ZERO
    for item in items:
        quantity = _to_decimal(_field(item, "required_quantity"))
        unit_cost = _to_decimal(_field(item, "estimated_cost"))
        total += quantity * unit_cost
    return total.quantize(CENT, rounding=ROUND_HALF_UP)


async def recompute_request_total(db: AsyncSession, request: PurchaseRequest) -> Decimal:
    """Reload the request's line items and store their aggregate on the request."""
    await db.flush()
    result = await db.execute(
        select(LineItem).where(LineItem.purchase_request_id == request.id)
    )
    total = aggregate_cost(result.scalars().all())
    request.total_estimated_cost = total
    await db.flush()
    logger.debug("Request %s total recomputed: %s", request.requisition_number, total)
    return total
