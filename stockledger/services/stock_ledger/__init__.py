"""
Stock Ledger Service - Canonical Entry Point

All batch mutations go through this package: purchases (new batch or
top-up), oldest-first sale allocation and waste recording.
"""

from ._allocation import (
    Allocation,
    BatchSnapshot,
    StockRequirement,
    allocate_and_deduct,
    credit_allocations,
    plan_deduction,
)
from ._batch_ops import (
    create_batch,
    find_top_up_candidate,
    get_batch,
    get_batch_for_update,
    list_batches,
    list_batches_for_ingredient,
    lock_batches_for_ingredients,
    top_up_batch,
    total_remaining,
)
from ._purchase_ops import list_purchases, record_purchase
from ._unit_of_work import retry_on_conflict, unit_of_work
from ._validation import validate_ledger_conservation
from ._waste_ops import list_waste_records, record_waste

__all__ = [
    'Allocation',
    'BatchSnapshot',
    'StockRequirement',
    'allocate_and_deduct',
    'create_batch',
    'credit_allocations',
    'find_top_up_candidate',
    'get_batch',
    'get_batch_for_update',
    'list_batches',
    'list_batches_for_ingredient',
    'list_purchases',
    'list_waste_records',
    'lock_batches_for_ingredients',
    'plan_deduction',
    'record_purchase',
    'record_waste',
    'retry_on_conflict',
    'top_up_batch',
    'total_remaining',
    'unit_of_work',
    'validate_ledger_conservation',
]
