from decimal import Decimal

import pytest

from stockledger.extensions import db
from stockledger.models import StockBatch, WasteRecord
from stockledger.services.errors import (
    IncompatibleUnitsError,
    InsufficientStockError,
    InvalidInputError,
    NotFoundError,
)
from stockledger.services.stock_ledger import (
    list_batches_for_ingredient,
    list_waste_records,
    record_waste,
    validate_ledger_conservation,
)


@pytest.fixture
def flour_batch(make_ingredient):
    flour = make_ingredient('Flour', 'kg', 10, '20.00')
    return flour, list_batches_for_ingredient(flour.id)[0]


class TestRecordWaste:

    def test_waste_moves_remaining_to_wasted(self, flour_batch):
        """Waste moves stock from remaining to wasted."""
        flour, batch = flour_batch

        record = record_waste(batch.id, 500, 'g', 'Spilled on the floor')

        refreshed = db.session.get(StockBatch, batch.id)
        assert refreshed.remaining_quantity == Decimal('9.5')
        assert refreshed.wasted_quantity == Decimal('0.5')
        assert refreshed.purchased_quantity == Decimal('10')
        assert record.quantity == Decimal('0.5')
        assert record.unit == 'kg'
        assert record.reason == 'Spilled on the floor'

        is_valid, error, totals = validate_ledger_conservation(flour.id)
        assert is_valid, error
        assert totals['wasted'] == Decimal('500')

    def test_waste_exceeding_remaining_is_rejected(self, flour_batch):
        """Test waste above the remainder is rejected."""
        _, batch = flour_batch

        with pytest.raises(InsufficientStockError) as excinfo:
            record_waste(batch.id, 11, 'kg', 'Mice')

        assert 'Insufficient stock for waste recording' in excinfo.value.message
        refreshed = db.session.get(StockBatch, batch.id)
        assert refreshed.remaining_quantity == Decimal('10')
        assert refreshed.wasted_quantity == Decimal('0')
        assert WasteRecord.query.count() == 0

    def test_waste_can_empty_a_batch(self, flour_batch):
        """Waste may take a batch to exactly zero."""
        _, batch = flour_batch
        record_waste(batch.id, 10, 'kg', 'Expired')
        assert db.session.get(StockBatch, batch.id).is_depleted

    @pytest.mark.parametrize('reason', ['', '   ', None, 'x' * 256])
    def test_reason_is_required_and_bounded(self, flour_batch, reason):
        """Test waste reason is required and length-bounded."""
        _, batch = flour_batch
        with pytest.raises(InvalidInputError):
            record_waste(batch.id, 1, 'kg', reason)

    def test_non_positive_quantity(self, flour_batch):
        """Test waste quantity must be positive."""
        _, batch = flour_batch
        with pytest.raises(InvalidInputError):
            record_waste(batch.id, 0, 'kg', 'Nothing')

    def test_incompatible_unit(self, flour_batch):
        """Test waste in the wrong unit family is rejected."""
        _, batch = flour_batch
        with pytest.raises(IncompatibleUnitsError):
            record_waste(batch.id, 1, 'L', 'Wrong unit')

    def test_unknown_batch(self, db_session):
        """Test waste on an unknown batch raises NotFoundError."""
        with pytest.raises(NotFoundError):
            record_waste(12345, 1, 'kg', 'Ghost')


class TestListWaste:

    def test_filter_by_ingredient_and_batch(self, flour_batch, make_ingredient):
        """Waste records filter by ingredient and by batch."""
        flour, batch = flour_batch
        sugar = make_ingredient('Sugar', 'g', 1000, '2.00')
        sugar_batch = list_batches_for_ingredient(sugar.id)[0]

        record_waste(batch.id, 1, 'kg', 'Damp')
        record_waste(sugar_batch.id, 100, 'g', 'Ants')

        assert [r.reason for r in list_waste_records(ingredient_id=flour.id)] == ['Damp']
        assert [r.reason for r in list_waste_records(stock_batch_id=sugar_batch.id)] == ['Ants']
        assert len(list_waste_records()) == 2
