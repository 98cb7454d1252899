"""
Unit Conversion Service Package

Maps quantities between ml/L, g/kg and counts. Cross-family conversion is an
error; every result is rounded to a fixed precision.
"""

from .unit_conversion import (
    COST_PLACES,
    QUANTITY_PLACES,
    Unit,
    UnitFamily,
    convert_price,
    convert_quantity,
    is_compatible,
    parse_unit,
    quantity_places,
    round_cost,
    round_money,
    round_quantity,
    to_base_unit,
    to_decimal,
)

__all__ = [
    'COST_PLACES',
    'QUANTITY_PLACES',
    'Unit',
    'UnitFamily',
    'convert_price',
    'convert_quantity',
    'is_compatible',
    'parse_unit',
    'quantity_places',
    'round_cost',
    'round_money',
    'round_quantity',
    'to_base_unit',
    'to_decimal',
]
