import logging
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from ...models import Ingredient, StockBatch, db
from ...utils.timezone_utils import TimezoneUtils
from ..costing_engine import usable_fraction, validate_waste_percent, weighted_average_price
from ..errors import IncompatibleUnitsError, InvalidInputError, NotFoundError
from ..unit_conversion import (
    convert_price,
    convert_quantity,
    is_compatible,
    parse_unit,
    round_cost,
    round_money,
    round_quantity,
    to_decimal,
)

logger = logging.getLogger(__name__)


def _fifo_order():
    return (StockBatch.ingredient_id.asc(), StockBatch.purchased_at.asc(), StockBatch.id.asc())


def get_ingredient(ingredient_id) -> Ingredient:
    ingredient = db.session.get(Ingredient, ingredient_id)
    if not ingredient:
        raise NotFoundError('Ingredient', ingredient_id)
    return ingredient


def create_batch(ingredient, quantity, unit, price_per_unit, waste_percent=None, purchased_at=None) -> StockBatch:
    """
    Open a new batch holding ``quantity`` ``unit`` bought at ``price_per_unit``.

    Remaining stock starts at the waste-adjusted usable quantity.
    """
    parsed = parse_unit(unit)
    if not is_compatible(parsed, ingredient.unit):
        raise IncompatibleUnitsError(parsed, ingredient.unit)

    amount = round_quantity(quantity, parsed)
    if amount <= 0:
        raise InvalidInputError("Quantity must be a positive number", field='quantity')
    price = to_decimal(price_per_unit, 'purchase_price')
    if price < 0:
        raise InvalidInputError("Purchase price cannot be negative", field='purchase_price')

    waste = validate_waste_percent(ingredient.waste_percent if waste_percent is None else waste_percent)
    usable = round_quantity(amount * usable_fraction(waste), parsed)

    batch = StockBatch(
        ingredient_id=ingredient.id,
        purchased_quantity=amount,
        usable_quantity=usable,
        unit=parsed.value,
        total_purchased_price=round_money(amount * price),
        purchase_price_per_unit=round_cost(price),
        waste_percent=waste,
        remaining_quantity=usable,
        wasted_quantity=Decimal(0),
        purchased_at=purchased_at or TimezoneUtils.utc_now(),
    )
    db.session.add(batch)
    db.session.flush()

    logger.info(f"STOCK LEDGER: Created batch {batch.id} for ingredient {ingredient.id}: {amount} {parsed} ({usable} usable)")
    return batch


def top_up_batch(batch, quantity, unit, price_per_unit, waste_percent) -> StockBatch:
    """
    Fold a repeat purchase into an existing compatible batch.

    The purchase is converted into the batch's unit; the per-unit price
    becomes the weighted average over the purchased quantities.
    """
    if not is_compatible(unit, batch.unit):
        raise IncompatibleUnitsError(parse_unit(unit), batch.unit)

    added = convert_quantity(quantity, unit, batch.unit)
    if added <= 0:
        raise InvalidInputError("Quantity must be a positive number", field='quantity')
    price = to_decimal(price_per_unit, 'purchase_price')
    if price < 0:
        raise InvalidInputError("Purchase price cannot be negative", field='purchase_price')

    waste = validate_waste_percent(waste_percent)
    usable_added = round_quantity(added * usable_fraction(waste), batch.unit)
    old_quantity = Decimal(batch.purchased_quantity)

    batch.purchase_price_per_unit = weighted_average_price(
        batch.purchase_price_per_unit,
        old_quantity,
        convert_price(price, unit, batch.unit),
        added,
    )
    batch.purchased_quantity = old_quantity + added
    batch.usable_quantity = Decimal(batch.usable_quantity) + usable_added
    batch.remaining_quantity = Decimal(batch.remaining_quantity) + usable_added
    batch.total_purchased_price = Decimal(batch.total_purchased_price or 0) + round_money(to_decimal(quantity) * price)
    batch.waste_percent = waste
    batch.updated_at = TimezoneUtils.utc_now()
    db.session.flush()

    logger.info(
        f"STOCK LEDGER: Topped up batch {batch.id} by {added} {batch.unit}, "
        f"remaining {batch.remaining_quantity}, avg price {batch.purchase_price_per_unit}"
    )
    return batch


def find_top_up_candidate(ingredient_id, unit, lock=False) -> Optional[StockBatch]:
    """Latest batch of a compatible unit family that still holds stock."""
    query = StockBatch.query.filter(
        StockBatch.ingredient_id == ingredient_id,
        StockBatch.remaining_quantity > 0,
    ).order_by(StockBatch.purchased_at.desc(), StockBatch.id.desc())
    if lock:
        query = query.with_for_update().populate_existing()

    for batch in query.all():
        if is_compatible(unit, batch.unit):
            return batch
    return None


def list_batches_for_ingredient(ingredient_id, include_depleted=True) -> List[StockBatch]:
    """Batches ordered oldest-purchased first, ties broken by id."""
    query = StockBatch.query.filter(StockBatch.ingredient_id == ingredient_id)
    if not include_depleted:
        query = query.filter(StockBatch.remaining_quantity > 0)
    return query.order_by(*_fifo_order()).all()


def list_batches(ingredient_id: Optional[int] = None, include_depleted=True) -> List[StockBatch]:
    """All batches, or one ingredient's, in allocation order."""
    if ingredient_id is not None:
        return list_batches_for_ingredient(ingredient_id, include_depleted=include_depleted)
    query = StockBatch.query
    if not include_depleted:
        query = query.filter(StockBatch.remaining_quantity > 0)
    return query.order_by(*_fifo_order()).all()


def lock_batches_for_ingredients(ingredient_ids: Iterable[int]) -> Dict[int, List[StockBatch]]:
    """
    SELECT ... FOR UPDATE every batch of the given ingredients.

    Rows are locked in (ingredient id, purchase order) so overlapping
    operations always acquire them in the same sequence.
    """
    ids = sorted(set(ingredient_ids))
    locked = {ingredient_id: [] for ingredient_id in ids}
    if not ids:
        return locked

    batches = (
        StockBatch.query.filter(StockBatch.ingredient_id.in_(ids))
        .order_by(*_fifo_order())
        .with_for_update()
        .populate_existing()
        .all()
    )
    for batch in batches:
        locked[batch.ingredient_id].append(batch)
    return locked


def get_batch(stock_batch_id) -> StockBatch:
    batch = db.session.get(StockBatch, stock_batch_id)
    if not batch:
        raise NotFoundError('Stock batch', stock_batch_id)
    return batch


def get_batch_for_update(stock_batch_id) -> StockBatch:
    batch = (
        StockBatch.query.filter(StockBatch.id == stock_batch_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not batch:
        raise NotFoundError('Stock batch', stock_batch_id)
    return batch


def total_remaining(ingredient_id, unit=None) -> Decimal:
    """Remaining stock across all batches, expressed in ``unit`` (default: the ingredient's base unit)."""
    ingredient = get_ingredient(ingredient_id)
    target = parse_unit(unit) if unit else parse_unit(ingredient.unit).base
    if not is_compatible(target, ingredient.unit):
        raise IncompatibleUnitsError(target, ingredient.unit)

    base = target.base
    total = Decimal(0)
    for batch in list_batches_for_ingredient(ingredient_id, include_depleted=False):
        total += convert_quantity(batch.remaining_quantity, batch.unit, base)
    return convert_quantity(total, base, target)
