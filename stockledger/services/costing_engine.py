import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from .errors import (
    IncompatibleUnitsError,
    InvalidInputError,
    InvalidWastePercentError,
    ZeroUsableQuantityError,
)
from .unit_conversion import (
    UnitFamily,
    parse_unit,
    round_cost,
    round_quantity,
    to_base_unit,
    to_decimal,
)

logger = logging.getLogger(__name__)

_HUNDRED = Decimal('100')

_COST_FIELDS = {
    UnitFamily.VOLUME: 'cost_per_ml',
    UnitFamily.WEIGHT: 'cost_per_gram',
    UnitFamily.COUNT: 'cost_per_unit',
}


@dataclass(frozen=True)
class IngredientCosts:
    """True cost per base unit; only the field for the unit's family is set."""
    cost_per_ml: Optional[Decimal] = None
    cost_per_gram: Optional[Decimal] = None
    cost_per_unit: Optional[Decimal] = None

    def as_dict(self):
        return {
            'cost_per_ml': self.cost_per_ml,
            'cost_per_gram': self.cost_per_gram,
            'cost_per_unit': self.cost_per_unit,
        }


def validate_waste_percent(waste_percent) -> Decimal:
    value = to_decimal(waste_percent, 'waste_percent')
    if value < 0 or value > _HUNDRED:
        raise InvalidWastePercentError(waste_percent)
    return value


def usable_fraction(waste_percent) -> Decimal:
    return 1 - validate_waste_percent(waste_percent) / _HUNDRED


def usable_quantity(quantity, unit, waste_percent) -> Decimal:
    """Waste-adjusted quantity normalised to the unit's base (ml, g or count)."""
    amount = to_decimal(quantity)
    if amount <= 0:
        raise InvalidInputError("Quantity must be a positive number", field='quantity')
    return round_quantity(to_base_unit(amount, unit) * usable_fraction(waste_percent))


def calculate_costs(purchase_price, waste_percent, unit, quantity) -> IngredientCosts:
    """
    Derive the true cost per base unit: purchase price divided by usable quantity.

    Raises:
        InvalidWastePercentError: waste outside [0, 100]
        InvalidInputError: non-positive quantity or negative price
        ZeroUsableQuantityError: waste consumes the whole purchase
    """
    price = to_decimal(purchase_price, 'purchase_price')
    if price < 0:
        raise InvalidInputError("Purchase price cannot be negative", field='purchase_price')

    parsed = parse_unit(unit)
    usable = usable_quantity(quantity, parsed, waste_percent)
    if usable <= 0:
        raise ZeroUsableQuantityError("Waste percent results in zero or negative usable quantity")

    field = _COST_FIELDS[parsed.family]
    costs = IngredientCosts(**{field: round_cost(price / usable)})
    logger.debug(f"COSTING: {price} for {quantity} {parsed} at {waste_percent}% waste -> {field}={getattr(costs, field)}")
    return costs


def apply_costs(ingredient, costs: IngredientCosts) -> None:
    for field, value in costs.as_dict().items():
        setattr(ingredient, field, value)


def true_cost_per_base_unit(ingredient, unit) -> Decimal:
    """
    Populated cost field of ``ingredient`` matching the family of ``unit``.

    A recipe line asking for grams of an ingredient bought by volume is an
    IncompatibleUnitsError. An ingredient with no cost yet prices at zero.
    """
    requested = parse_unit(unit)
    own = parse_unit(ingredient.unit)
    if requested.family != own.family:
        raise IncompatibleUnitsError(requested, own)

    value = getattr(ingredient, _COST_FIELDS[requested.family])
    return Decimal(value) if value is not None else Decimal(0)


def weighted_average_price(old_avg, old_qty, new_price, new_qty) -> Decimal:
    """(old_avg*old_qty + new_price*new_qty) / (old_qty + new_qty); keeps old_avg when the total is zero."""
    old_avg = to_decimal(old_avg, 'price')
    old_qty = to_decimal(old_qty)
    new_price = to_decimal(new_price, 'price')
    new_qty = to_decimal(new_qty)

    combined = old_qty + new_qty
    if combined <= 0:
        return round_cost(old_avg)
    return round_cost((old_avg * old_qty + new_price * new_qty) / combined)


def line_cost(quantity, unit, cost_per_base_unit) -> Decimal:
    """Cost of ``quantity`` ``unit`` of an ingredient priced per base unit."""
    return round_cost(to_base_unit(quantity, unit) * to_decimal(cost_per_base_unit, 'cost'))


__all__ = [
    'IngredientCosts',
    'apply_costs',
    'calculate_costs',
    'line_cost',
    'true_cost_per_base_unit',
    'usable_fraction',
    'usable_quantity',
    'validate_waste_percent',
    'weighted_average_price',
]
