from decimal import Decimal

import pytest

from stockledger.extensions import db
from stockledger.models import StockBatch
from stockledger.services.errors import (
    IncompatibleUnitsError,
    InsufficientStockError,
    InvalidInputError,
    NegativeStockError,
    NotFoundError,
)
from stockledger.services.stock_ledger import (
    Allocation,
    StockRequirement,
    allocate_and_deduct,
    credit_allocations,
    plan_deduction,
    total_remaining,
    unit_of_work,
)
from stockledger.services.stock_ledger._allocation import _apply_plan


def _remaining(batch_id):
    return db.session.get(StockBatch, batch_id).remaining_quantity


@pytest.fixture
def syrup_batches(make_ingredient, make_batch):
    """Batch A bought earlier with 5 units, batch B bought later with 10."""
    syrup = make_ingredient('Vanilla Syrup', 'units', 1, '1.00', open_batch=False)
    batch_a = make_batch(syrup, 5, 'units', '1.00', days_ago=2)
    batch_b = make_batch(syrup, 10, 'units', '1.20', days_ago=1)
    return syrup, batch_a, batch_b


class TestOldestFirstAllocation:

    def test_deduction_drains_oldest_batch_first(self, syrup_batches):
        """Test deduction empties the oldest batch before the next."""
        syrup, batch_a, batch_b = syrup_batches

        with unit_of_work():
            plan = allocate_and_deduct({syrup.id: (7, 'units')})

        assert _remaining(batch_a.id) == Decimal('0')
        assert _remaining(batch_b.id) == Decimal('8')
        assert [(a.stock_batch_id, a.quantity) for a in plan] == [
            (batch_a.id, Decimal('5')),
            (batch_b.id, Decimal('2')),
        ]

    def test_requirements_in_mixed_units_are_summed(self, make_ingredient, make_batch):
        """Requirements in ml and L are summed per ingredient."""
        flour = make_ingredient('Flour', 'kg', 1, '1.00', open_batch=False)
        older = make_batch(flour, 1, 'kg', '1.00', days_ago=3)
        newer = make_batch(flour, 500, 'g', '0.002', days_ago=1)

        with unit_of_work():
            plan = allocate_and_deduct([
                StockRequirement(flour.id, Decimal('1'), 'kg'),
                StockRequirement(flour.id, Decimal('200'), 'g'),
            ])

        assert [a.unit for a in plan] == ['kg', 'g']
        assert _remaining(older.id) == Decimal('0')
        assert _remaining(newer.id) == Decimal('300')
        assert total_remaining(flour.id) == Decimal('300')

    def test_plan_deduction_is_a_dry_run(self, syrup_batches):
        """Planning a deduction leaves batches untouched."""
        syrup, batch_a, batch_b = syrup_batches

        plan = plan_deduction({syrup.id: (12, 'units')})

        assert sum(a.quantity for a in plan) == Decimal('12')
        assert _remaining(batch_a.id) == Decimal('5')
        assert _remaining(batch_b.id) == Decimal('10')

    def test_credit_restores_allocated_stock(self, syrup_batches):
        """Crediting allocations restores the original stock."""
        syrup, batch_a, batch_b = syrup_batches

        with unit_of_work():
            plan = allocate_and_deduct({syrup.id: (9, 'units')})
        with unit_of_work():
            credit_allocations(plan)

        assert _remaining(batch_a.id) == Decimal('5')
        assert _remaining(batch_b.id) == Decimal('10')

    def test_credit_to_missing_batch_fails(self, syrup_batches):
        """A credit whose batch has gone aborts instead of silently dropping stock."""
        syrup, batch_a, _ = syrup_batches

        with pytest.raises(NotFoundError):
            with unit_of_work():
                credit_allocations([
                    Allocation(batch_a.id, syrup.id, Decimal('1'), 'units'),
                    Allocation(999, syrup.id, Decimal('2'), 'units'),
                ])

        assert _remaining(batch_a.id) == Decimal('5')


class TestAtomicity:

    def test_shortage_of_one_ingredient_touches_nothing(self, make_ingredient, make_product):
        """One short ingredient aborts the whole deduction."""
        milk = make_ingredient('Milk', 'ml', 150, '1.50')
        coffee = make_ingredient('Coffee Beans', 'g', 50, '5.00')

        with pytest.raises(InsufficientStockError) as excinfo:
            with unit_of_work():
                allocate_and_deduct({
                    milk.id: (200, 'ml'),
                    coffee.id: (18, 'g'),
                })

        assert excinfo.value.ingredient_id == milk.id
        assert excinfo.value.available == Decimal('150')
        assert excinfo.value.required == Decimal('200')
        assert total_remaining(milk.id) == Decimal('150')
        assert total_remaining(coffee.id) == Decimal('50')

    def test_shortage_checked_before_any_batch_is_mutated(self, make_ingredient):
        """Sufficiency is checked before any batch is mutated."""
        # Coffee is checked after milk; milk must not be deducted when coffee is short
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        coffee = make_ingredient('Coffee Beans', 'g', 10, '1.00')

        with pytest.raises(InsufficientStockError):
            with unit_of_work():
                allocate_and_deduct({milk.id: (200, 'ml'), coffee.id: (18, 'g')})

        assert total_remaining(milk.id) == Decimal('500')
        assert total_remaining(coffee.id) == Decimal('10')

    def test_negative_batch_is_fatal(self, syrup_batches):
        """Test a plan driving a batch negative raises NegativeStockError."""
        syrup, batch_a, _ = syrup_batches
        row = db.session.get(StockBatch, batch_a.id)
        plan = [Allocation(batch_a.id, syrup.id, Decimal('6'), 'unit')]

        with pytest.raises(NegativeStockError):
            with unit_of_work():
                _apply_plan(plan, {batch_a.id: row})

        assert _remaining(batch_a.id) == Decimal('5')


class TestRequirementValidation:

    def test_incompatible_unit(self, make_ingredient):
        """Test requirement units must match the ingredient family."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        with pytest.raises(IncompatibleUnitsError):
            plan_deduction({milk.id: (5, 'g')})

    def test_unknown_ingredient(self, db_session):
        """Test unknown ingredients raise NotFoundError."""
        with pytest.raises(NotFoundError):
            plan_deduction({404: (1, 'ml')})

    def test_non_positive_requirement(self, make_ingredient):
        """Test requirements must be positive."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        with pytest.raises(InvalidInputError):
            plan_deduction({milk.id: (0, 'ml')})
