import logging
from decimal import Decimal

from sqlalchemy import func

from ...models import Ingredient, SaleAllocation, StockBatch, db
from ..unit_conversion import convert_quantity, parse_unit

logger = logging.getLogger(__name__)

TOLERANCE = Decimal('0.000001')


def validate_ledger_conservation(ingredient_id):
    """
    Check usable purchased == remaining + wasted + consumed for an ingredient.

    Consumed stock is what recorded sale allocations took from each batch,
    so the check is independent of the batch's own counters. Returns
    (is_valid, error_message, totals) with totals in the ingredient's base unit.
    """
    ingredient = db.session.get(Ingredient, ingredient_id)
    if not ingredient:
        return False, "Ingredient not found", {}

    base = parse_unit(ingredient.unit).base
    consumed_by_batch = dict(
        db.session.query(SaleAllocation.stock_batch_id, func.sum(SaleAllocation.quantity))
        .join(StockBatch, SaleAllocation.stock_batch_id == StockBatch.id)
        .filter(StockBatch.ingredient_id == ingredient_id)
        .group_by(SaleAllocation.stock_batch_id)
        .all()
    )

    totals = {'purchased': Decimal(0), 'remaining': Decimal(0), 'wasted': Decimal(0), 'consumed': Decimal(0)}
    problems = []
    batches = StockBatch.query.filter(StockBatch.ingredient_id == ingredient_id).order_by(StockBatch.id).all()

    for batch in batches:
        usable = Decimal(batch.usable_quantity)
        remaining = Decimal(batch.remaining_quantity)
        wasted = Decimal(batch.wasted_quantity or 0)
        consumed = Decimal(str(consumed_by_batch.get(batch.id) or 0))

        if remaining < 0 or wasted < 0:
            problems.append(f"batch {batch.id} negative (remaining={remaining}, wasted={wasted})")
        drift = usable - (remaining + wasted + consumed)
        if abs(drift) > TOLERANCE:
            problems.append(
                f"batch {batch.id}: usable={usable} remaining={remaining} wasted={wasted} consumed={consumed}"
            )

        totals['purchased'] += convert_quantity(usable, batch.unit, base)
        totals['remaining'] += convert_quantity(remaining, batch.unit, base)
        totals['wasted'] += convert_quantity(wasted, batch.unit, base)
        totals['consumed'] += convert_quantity(consumed, batch.unit, base)

    totals['unit'] = base.value

    if problems:
        logger.error(f"LEDGER CONSERVATION MISMATCH for ingredient {ingredient_id} ({ingredient.name}):")
        for problem in problems:
            logger.error(f"  {problem}")
        return False, f"Ledger conservation error: {'; '.join(problems)}", totals

    return True, None, totals
