import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Tuple

from ...models import Ingredient, StockBatch, db
from ..errors import IncompatibleUnitsError, InsufficientStockError, InvalidInputError, NegativeStockError, NotFoundError
from ..unit_conversion import Unit, convert_quantity, parse_unit, to_decimal
from ._batch_ops import lock_batches_for_ingredients, list_batches_for_ingredient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockRequirement:
    ingredient_id: int
    quantity: Decimal
    unit: str


@dataclass(frozen=True)
class BatchSnapshot:
    """Values of a batch row read under lock; planning never touches live rows."""
    id: int
    ingredient_id: int
    unit: Unit
    remaining_quantity: Decimal
    purchased_at: datetime

    @classmethod
    def from_batch(cls, batch: StockBatch) -> 'BatchSnapshot':
        return cls(
            id=batch.id,
            ingredient_id=batch.ingredient_id,
            unit=parse_unit(batch.unit),
            remaining_quantity=Decimal(batch.remaining_quantity),
            purchased_at=batch.purchased_at,
        )


@dataclass(frozen=True)
class Allocation:
    """Quantity to take from one batch, in that batch's unit."""
    stock_batch_id: int
    ingredient_id: int
    quantity: Decimal
    unit: str

    def to_dict(self):
        return {
            'stock_batch_id': self.stock_batch_id,
            'ingredient_id': self.ingredient_id,
            'quantity': self.quantity,
            'unit': self.unit,
        }


def _iter_requirements(requirements) -> Iterable[StockRequirement]:
    if isinstance(requirements, Mapping):
        for ingredient_id, entries in requirements.items():
            if isinstance(entries, (StockRequirement, tuple)):
                entries = [entries]
            for entry in entries:
                if isinstance(entry, StockRequirement):
                    yield entry
                else:
                    quantity, unit = entry
                    yield StockRequirement(ingredient_id, quantity, unit)
    else:
        for entry in requirements:
            yield entry


def _sum_requirements(requirements) -> Dict[int, Tuple[Decimal, Unit]]:
    """Total required per ingredient, in that ingredient's base unit."""
    totals: Dict[int, Tuple[Decimal, Unit]] = {}
    ingredients: Dict[int, Ingredient] = {}

    for requirement in _iter_requirements(requirements):
        quantity = to_decimal(requirement.quantity)
        if quantity <= 0:
            raise InvalidInputError("Required quantity must be positive", field='quantity')

        ingredient_id = requirement.ingredient_id
        if ingredient_id not in ingredients:
            ingredient = db.session.get(Ingredient, ingredient_id)
            if not ingredient:
                raise NotFoundError('Ingredient', ingredient_id)
            ingredients[ingredient_id] = ingredient

        base = parse_unit(ingredients[ingredient_id].unit).base
        requested = parse_unit(requirement.unit)
        if requested.family != base.family:
            raise IncompatibleUnitsError(requested, base)

        current, _ = totals.get(ingredient_id, (Decimal(0), base))
        totals[ingredient_id] = (current + convert_quantity(quantity, requested, base), base)

    return totals


def _check_sufficiency(required, snapshots: Dict[int, List[BatchSnapshot]]) -> None:
    """Every ingredient must be covered before any batch is touched."""
    for ingredient_id in sorted(required):
        needed, base = required[ingredient_id]
        available = sum(
            (convert_quantity(snap.remaining_quantity, snap.unit, base)
             for snap in snapshots.get(ingredient_id, ())
             if snap.remaining_quantity > 0),
            Decimal(0),
        )
        if available < needed:
            logger.warning(
                f"ALLOCATION: Insufficient stock for ingredient {ingredient_id}: "
                f"available {available} {base}, required {needed} {base}"
            )
            raise InsufficientStockError(ingredient_id, available, needed, base.value)


def _plan(required, snapshots: Dict[int, List[BatchSnapshot]]) -> List[Allocation]:
    plan: List[Allocation] = []
    for ingredient_id in sorted(required):
        needed, base = required[ingredient_id]
        still_needed = needed

        for snap in snapshots.get(ingredient_id, ()):
            if still_needed <= 0:
                break
            if snap.remaining_quantity <= 0:
                continue

            available_base = convert_quantity(snap.remaining_quantity, snap.unit, base)
            take_base = min(available_base, still_needed)
            if take_base == available_base:
                take = snap.remaining_quantity
            else:
                take = convert_quantity(take_base, base, snap.unit)
            if take <= 0:
                continue

            plan.append(Allocation(snap.id, ingredient_id, take, snap.unit.value))
            still_needed -= take_base

        if still_needed > 0:
            # Sufficiency was checked; reaching here means the snapshots disagree with themselves
            raise InsufficientStockError(ingredient_id, needed - still_needed, needed, base.value)

    return plan


def _snapshot(batches_by_ingredient) -> Dict[int, List[BatchSnapshot]]:
    return {
        ingredient_id: [BatchSnapshot.from_batch(batch) for batch in batches]
        for ingredient_id, batches in batches_by_ingredient.items()
    }


def plan_deduction(requirements, lock=False) -> List[Allocation]:
    """
    Dry run: the oldest-first allocation a deduction would make, without
    mutating any batch. Raises InsufficientStockError like the real thing.
    """
    required = _sum_requirements(requirements)
    if lock:
        batches = lock_batches_for_ingredients(required)
    else:
        batches = {
            ingredient_id: list_batches_for_ingredient(ingredient_id, include_depleted=False)
            for ingredient_id in required
        }
    snapshots = _snapshot(batches)
    _check_sufficiency(required, snapshots)
    return _plan(required, snapshots)


def _apply_plan(plan: List[Allocation], rows: Dict[int, StockBatch]) -> None:
    for allocation in plan:
        batch = rows[allocation.stock_batch_id]
        new_remaining = Decimal(batch.remaining_quantity) - allocation.quantity
        if new_remaining < 0:
            logger.error(
                f"ALLOCATION: Batch {batch.id} would go negative "
                f"({batch.remaining_quantity} - {allocation.quantity} {allocation.unit})"
            )
            raise NegativeStockError(batch.id, new_remaining)
        batch.remaining_quantity = new_remaining


def allocate_and_deduct(requirements) -> List[Allocation]:
    """
    Atomically deduct stock for a set of ingredient requirements.

    1. Sum each ingredient's requirement in its base unit.
    2. Lock every batch involved, snapshot it, and verify aggregate
       availability for ALL ingredients before mutating anything.
    3. Plan oldest-first: min(batch remaining, still needed) per batch.
    4. Apply the plan; a batch going negative raises NegativeStockError.

    Runs inside the caller's unit of work, which rolls back on any error.
    Returns the allocations for the caller to persist.
    """
    required = _sum_requirements(requirements)
    locked = lock_batches_for_ingredients(required)
    snapshots = _snapshot(locked)

    _check_sufficiency(required, snapshots)
    plan = _plan(required, snapshots)

    rows = {batch.id: batch for batches in locked.values() for batch in batches}
    _apply_plan(plan, rows)
    db.session.flush()

    logger.info(
        f"ALLOCATION: Deducted {len(plan)} batch slice(s) across {len(required)} ingredient(s)"
    )
    return plan


def credit_allocations(allocations) -> None:
    """Return previously allocated quantities to the batches they came from."""
    allocations = list(allocations)
    batch_ids = {allocation.stock_batch_id for allocation in allocations}
    rows = {}
    if batch_ids:
        rows = {
            batch.id: batch
            for batch in StockBatch.query.filter(StockBatch.id.in_(batch_ids))
            .order_by(StockBatch.ingredient_id.asc(), StockBatch.purchased_at.asc(), StockBatch.id.asc())
            .with_for_update()
            .populate_existing()
            .all()
        }

    for allocation in allocations:
        batch = rows.get(allocation.stock_batch_id)
        if not batch:
            logger.error(f"ALLOCATION: Batch {allocation.stock_batch_id} no longer exists; cannot re-credit")
            raise NotFoundError('Stock batch', allocation.stock_batch_id)
        quantity = convert_quantity(allocation.quantity, allocation.unit, batch.unit)
        batch.remaining_quantity = Decimal(batch.remaining_quantity) + quantity
        logger.info(f"ALLOCATION: Credited {quantity} {batch.unit} back to batch {batch.id}")
    db.session.flush()
