import logging
from decimal import Decimal
from typing import List, Optional

from ...models import StockBatch, WasteRecord, db
from ...utils.timezone_utils import TimezoneUtils
from ..errors import InsufficientStockError, InvalidInputError
from ..unit_conversion import convert_quantity, parse_unit, to_decimal
from ._batch_ops import get_batch_for_update
from ._unit_of_work import retry_on_conflict, unit_of_work

logger = logging.getLogger(__name__)

MAX_REASON_LENGTH = 255


def _validate_reason(reason) -> str:
    text = reason.strip() if isinstance(reason, str) else ''
    if not text:
        raise InvalidInputError("Waste reason is required", field='reason')
    if len(text) > MAX_REASON_LENGTH:
        raise InvalidInputError(f"Waste reason must be at most {MAX_REASON_LENGTH} characters", field='reason')
    return text


@retry_on_conflict
def record_waste(stock_batch_id, quantity, unit, reason) -> WasteRecord:
    """
    Move ``quantity`` from a batch's remaining stock to its wasted stock.

    The quantity is converted into the batch's unit and may not exceed what
    remains. Purchased totals are untouched. One unit of work.
    """
    text = _validate_reason(reason)
    amount = to_decimal(quantity)
    if amount <= 0:
        raise InvalidInputError("Waste quantity must be positive", field='quantity')
    parsed = parse_unit(unit)

    with unit_of_work():
        batch = get_batch_for_update(stock_batch_id)
        wasted = convert_quantity(amount, parsed, batch.unit)
        remaining = Decimal(batch.remaining_quantity)

        if wasted > remaining:
            logger.warning(
                f"WASTE: Rejected {wasted} {batch.unit} on batch {batch.id}, only {remaining} remaining"
            )
            raise InsufficientStockError(
                batch.ingredient_id,
                remaining,
                wasted,
                batch.unit,
                message=f"Insufficient stock for waste recording. Available: {remaining} {batch.unit}, "
                        f"requested: {wasted} {batch.unit}",
            )

        batch.remaining_quantity = remaining - wasted
        batch.wasted_quantity = Decimal(batch.wasted_quantity or 0) + wasted
        batch.updated_at = TimezoneUtils.utc_now()

        record = WasteRecord(
            stock_batch_id=batch.id,
            quantity=wasted,
            unit=batch.unit,
            reason=text,
        )
        db.session.add(record)
        db.session.flush()

        logger.info(f"WASTE: Recorded {wasted} {batch.unit} on batch {batch.id} ({text})")

    return record


def list_waste_records(stock_batch_id: Optional[int] = None, ingredient_id: Optional[int] = None) -> List[WasteRecord]:
    query = WasteRecord.query
    if stock_batch_id is not None:
        query = query.filter(WasteRecord.stock_batch_id == stock_batch_id)
    if ingredient_id is not None:
        query = query.join(StockBatch, WasteRecord.stock_batch).filter(StockBatch.ingredient_id == ingredient_id)
    return query.order_by(WasteRecord.recorded_at.asc(), WasteRecord.id.asc()).all()
