import logging
from typing import List, Optional

from ...models import Purchase, db
from ..costing_engine import apply_costs, calculate_costs
from ..errors import IncompatibleUnitsError, InvalidInputError
from ..unit_conversion import (
    convert_quantity,
    is_compatible,
    parse_unit,
    round_cost,
    round_money,
    round_quantity,
    to_decimal,
)
from ._batch_ops import create_batch, find_top_up_candidate, get_ingredient, top_up_batch
from ._unit_of_work import retry_on_conflict, unit_of_work

logger = logging.getLogger(__name__)


@retry_on_conflict
def record_purchase(ingredient_id, quantity, unit, purchase_price, purchased_at=None) -> Purchase:
    """
    Record a purchase of ``quantity`` ``unit`` at ``purchase_price`` per unit.

    Tops up the latest compatible batch that still holds stock, or opens a
    new batch. The ingredient's true cost is recomputed from this purchase
    and every product using the ingredient is re-costed. One unit of work.
    """
    amount = to_decimal(quantity)
    price = to_decimal(purchase_price, 'purchase_price')
    if amount <= 0 or price < 0:
        raise InvalidInputError("Invalid quantity or price")
    parsed = parse_unit(unit)
    amount = round_quantity(amount, parsed)

    with unit_of_work():
        ingredient = get_ingredient(ingredient_id)
        if not is_compatible(parsed, ingredient.unit):
            raise IncompatibleUnitsError(parsed, ingredient.unit)

        waste_percent = ingredient.waste_percent or 0
        candidate = find_top_up_candidate(ingredient.id, parsed, lock=True)
        if candidate:
            batch = top_up_batch(candidate, amount, parsed, price, waste_percent)
        else:
            batch = create_batch(ingredient, amount, parsed, price, waste_percent=waste_percent, purchased_at=purchased_at)

        total_cost = round_money(amount * price)
        purchase = Purchase(
            ingredient_id=ingredient.id,
            stock_batch_id=batch.id,
            quantity=amount,
            unit=parsed.value,
            purchase_price=round_cost(price),
            total_cost=total_cost,
        )
        if purchased_at is not None:
            purchase.purchased_at = purchased_at
        db.session.add(purchase)

        # Latest purchase drives the ingredient's declared price and true cost
        ingredient.quantity = convert_quantity(amount, parsed, ingredient.unit)
        ingredient.purchase_price = total_cost
        apply_costs(ingredient, calculate_costs(total_cost, waste_percent, parsed, amount))
        db.session.flush()

        from ..product_costing import recompute_products_for_ingredient
        recompute_products_for_ingredient(ingredient.id)

        logger.info(
            f"PURCHASE: {amount} {parsed} of ingredient {ingredient.id} at {price}/{parsed} "
            f"into batch {batch.id}"
        )

    return purchase


def list_purchases(ingredient_id: Optional[int] = None) -> List[Purchase]:
    """Purchases oldest first, optionally for one ingredient."""
    query = Purchase.query
    if ingredient_id is not None:
        query = query.filter(Purchase.ingredient_id == ingredient_id)
    return query.order_by(Purchase.purchased_at.asc(), Purchase.id.asc()).all()
