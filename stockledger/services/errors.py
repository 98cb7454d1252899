"""
Typed errors raised by the ledger services.

Every error is raised before a mutation or inside a unit of work, which rolls
back and re-raises. The API blueprint maps each class to an HTTP status.
"""

from decimal import Decimal
from typing import Any, Dict, Optional


class StockLedgerError(Exception):
    """Base class for all ledger failures."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {'error': type(self).__name__, 'message': self.message}


class InvalidInputError(StockLedgerError):
    """Non-positive quantity, negative price, bad reason text and similar."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field

    def to_dict(self):
        data = super().to_dict()
        if self.field:
            data['field'] = self.field
        return data


class InvalidWastePercentError(InvalidInputError):
    def __init__(self, waste_percent):
        super().__init__(
            f"Waste percent must be between 0 and 100, got {waste_percent}",
            field='waste_percent',
        )
        self.waste_percent = waste_percent


class UnknownUnitError(InvalidInputError):
    def __init__(self, unit):
        super().__init__(f"Unknown unit: {unit!r}", field='unit')
        self.unit = unit


class IncompatibleUnitsError(StockLedgerError):
    def __init__(self, from_unit, to_unit):
        super().__init__(f"Cannot convert {from_unit} to {to_unit}: different unit families")
        self.from_unit = from_unit
        self.to_unit = to_unit

    def to_dict(self):
        data = super().to_dict()
        data.update({'from_unit': str(self.from_unit), 'to_unit': str(self.to_unit)})
        return data


class InsufficientStockError(StockLedgerError):
    """Aggregate remaining stock is below what an operation needs."""

    status_code = 409

    def __init__(self, ingredient_id: int, available: Decimal, required: Decimal, unit: str,
                 message: Optional[str] = None):
        super().__init__(
            message
            or f"Insufficient stock for ingredient {ingredient_id}: available {available} {unit}, required {required} {unit}"
        )
        self.ingredient_id = ingredient_id
        self.available = available
        self.required = required
        self.unit = unit

    def to_dict(self):
        data = super().to_dict()
        data.update({
            'ingredient_id': self.ingredient_id,
            'available': str(self.available),
            'required': str(self.required),
            'unit': self.unit,
        })
        return data


class NegativeStockError(StockLedgerError):
    """A deduction would drive a batch below zero; always fatal to the unit of work."""

    status_code = 409

    def __init__(self, stock_batch_id: int, remaining: Decimal):
        super().__init__(f"Stock batch {stock_batch_id} would go negative ({remaining})")
        self.stock_batch_id = stock_batch_id
        self.remaining = remaining

    def to_dict(self):
        data = super().to_dict()
        data.update({'stock_batch_id': self.stock_batch_id, 'remaining': str(self.remaining)})
        return data


class ConcurrentUpdateError(StockLedgerError):
    """Another transaction changed a batch between our read and our write."""

    status_code = 409

    def __init__(self, message: str = "Stock changed while the operation was running; please retry"):
        super().__init__(message)


class ZeroUsableQuantityError(StockLedgerError):
    status_code = 422

    def __init__(self, message: str = "Waste percent leaves no usable quantity"):
        super().__init__(message)


class NotFoundError(StockLedgerError):
    status_code = 404

    def __init__(self, resource: str, resource_id: Any):
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


__all__ = [
    'StockLedgerError',
    'InvalidInputError',
    'InvalidWastePercentError',
    'UnknownUnitError',
    'IncompatibleUnitsError',
    'InsufficientStockError',
    'NegativeStockError',
    'ConcurrentUpdateError',
    'ZeroUsableQuantityError',
    'NotFoundError',
]
