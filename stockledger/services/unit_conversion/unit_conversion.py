import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum

from flask import current_app, has_app_context

from ..errors import IncompatibleUnitsError, InvalidInputError, UnknownUnitError

logger = logging.getLogger(__name__)

QUANTITY_PLACES = 2
COST_PLACES = 4


class UnitFamily(str, Enum):
    VOLUME = 'volume'
    WEIGHT = 'weight'
    COUNT = 'count'


class Unit(str, Enum):
    """Closed set of units the ledger understands; the value is the stored form."""

    MILLILITER = 'ml'
    LITER = 'L'
    GRAM = 'g'
    KILOGRAM = 'kg'
    COUNT = 'unit'

    @property
    def family(self) -> UnitFamily:
        return _FAMILIES[self]

    @property
    def base(self) -> 'Unit':
        return _BASE_UNITS[self.family]

    @property
    def factor(self) -> Decimal:
        """Multiplier from this unit into its family's base unit."""
        return _FACTORS[self]

    def __str__(self):
        return self.value


_FAMILIES = {
    Unit.MILLILITER: UnitFamily.VOLUME,
    Unit.LITER: UnitFamily.VOLUME,
    Unit.GRAM: UnitFamily.WEIGHT,
    Unit.KILOGRAM: UnitFamily.WEIGHT,
    Unit.COUNT: UnitFamily.COUNT,
}

_BASE_UNITS = {
    UnitFamily.VOLUME: Unit.MILLILITER,
    UnitFamily.WEIGHT: Unit.GRAM,
    UnitFamily.COUNT: Unit.COUNT,
}

_FACTORS = {
    Unit.MILLILITER: Decimal('1'),
    Unit.LITER: Decimal('1000'),
    Unit.GRAM: Decimal('1'),
    Unit.KILOGRAM: Decimal('1000'),
    Unit.COUNT: Decimal('1'),
}

# Extra decimal places a unit needs so that 0.01 of its base unit stays representable
_EXTRA_PLACES = {
    Unit.MILLILITER: 0,
    Unit.LITER: 3,
    Unit.GRAM: 0,
    Unit.KILOGRAM: 3,
    Unit.COUNT: 0,
}

_ALIASES = {
    'ml': Unit.MILLILITER,
    'milliliter': Unit.MILLILITER,
    'millilitre': Unit.MILLILITER,
    'l': Unit.LITER,
    'liter': Unit.LITER,
    'litre': Unit.LITER,
    'g': Unit.GRAM,
    'gram': Unit.GRAM,
    'gramme': Unit.GRAM,
    'kg': Unit.KILOGRAM,
    'kilogram': Unit.KILOGRAM,
    'kilo': Unit.KILOGRAM,
    'unit': Unit.COUNT,
    'count': Unit.COUNT,
    'each': Unit.COUNT,
    'ea': Unit.COUNT,
    'piece': Unit.COUNT,
    'pc': Unit.COUNT,
}


def parse_unit(value) -> Unit:
    """Resolve free text ("Liters", "ml", "KGs", "units") to a Unit."""
    if isinstance(value, Unit):
        return value
    if not isinstance(value, str) or not value.strip():
        raise UnknownUnitError(value)

    key = value.strip().lower()
    if key in _ALIASES:
        return _ALIASES[key]
    if key.endswith('s') and key[:-1] in _ALIASES:
        return _ALIASES[key[:-1]]
    raise UnknownUnitError(value)


def is_compatible(unit_a, unit_b) -> bool:
    return parse_unit(unit_a).family == parse_unit(unit_b).family


def to_decimal(value, field: str = 'quantity') -> Decimal:
    """Coerce user input into a finite Decimal without passing through binary floats."""
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, bool) or value is None:
        raise InvalidInputError(f"{field} must be a number", field=field)
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, ValueError):
            raise InvalidInputError(f"{field} must be a number, got {value!r}", field=field)
    if not result.is_finite():
        raise InvalidInputError(f"{field} must be a finite number", field=field)
    return result


def _configured_places(key: str, default: int) -> int:
    if has_app_context():
        return int(current_app.config.get(key, default))
    return default


def _quantize(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def quantity_places(unit=None) -> int:
    places = _configured_places('LEDGER_QUANTITY_PLACES', QUANTITY_PLACES)
    if unit is None:
        return places
    return places + _EXTRA_PLACES[parse_unit(unit)]


def round_quantity(value, unit=None) -> Decimal:
    """Round to 0.01 of the base unit, expressed in ``unit`` when given."""
    return _quantize(to_decimal(value), quantity_places(unit))


def round_cost(value) -> Decimal:
    return _quantize(to_decimal(value, 'cost'), _configured_places('LEDGER_COST_PLACES', COST_PLACES))


def round_money(value) -> Decimal:
    return _quantize(to_decimal(value, 'amount'), 2)


def convert_quantity(quantity, from_unit, to_unit) -> Decimal:
    """Convert within one unit family using the fixed factors, rounded for the target unit."""
    source = parse_unit(from_unit)
    target = parse_unit(to_unit)
    if source.family != target.family:
        raise IncompatibleUnitsError(source, target)

    amount = to_decimal(quantity)
    if source is target:
        return round_quantity(amount, target)
    converted = amount * source.factor / target.factor
    return round_quantity(converted, target)


def to_base_unit(quantity, unit) -> Decimal:
    source = parse_unit(unit)
    return convert_quantity(quantity, source, source.base)


def convert_price(price_per_unit, from_unit, to_unit) -> Decimal:
    """Re-express a price quoted per ``from_unit`` as a price per ``to_unit``."""
    source = parse_unit(from_unit)
    target = parse_unit(to_unit)
    if source.family != target.family:
        raise IncompatibleUnitsError(source, target)
    return round_cost(to_decimal(price_per_unit, 'price') * target.factor / source.factor)
