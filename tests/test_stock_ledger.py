from decimal import Decimal

import pytest
from sqlalchemy.exc import IntegrityError

from stockledger.extensions import db
from stockledger.models import Ingredient, Product, Purchase, StockBatch
from stockledger.services.errors import IncompatibleUnitsError, InvalidInputError, NotFoundError
from stockledger.services.ingredient_service import (
    delete_ingredient,
    get_ingredient,
    register_ingredient,
    register_ingredients,
    stock_summary,
    update_ingredient,
)
from stockledger.services.stock_ledger import (
    get_batch,
    list_batches,
    list_batches_for_ingredient,
    list_purchases,
    record_purchase,
    top_up_batch,
    total_remaining,
    validate_ledger_conservation,
)


class TestIngredientRegistration:

    def test_first_purchase_opens_batch(self, make_ingredient):
        """Registering an ingredient opens its first batch."""
        strawberries = make_ingredient('Strawberries', 'g', 1000, '10.00', waste_percent=20)

        assert strawberries.cost_per_gram == Decimal('0.0125')
        assert strawberries.cost_per_ml is None

        batches = list_batches_for_ingredient(strawberries.id)
        assert len(batches) == 1
        batch = batches[0]
        assert batch.purchased_quantity == Decimal('1000')
        assert batch.usable_quantity == Decimal('800')
        assert batch.remaining_quantity == Decimal('800')
        assert batch.purchase_price_per_unit == Decimal('0.0100')

    def test_register_without_batch(self, make_ingredient):
        """Registration can skip opening a batch."""
        sugar = make_ingredient('Sugar', 'kg', 1, '2.00', open_batch=False)
        assert list_batches_for_ingredient(sugar.id) == []
        assert total_remaining(sugar.id) == Decimal('0')

    def test_duplicate_name_rejected(self, make_ingredient):
        """Test duplicate ingredient names are rejected."""
        make_ingredient('Milk', 'ml', 500, '5.00')
        with pytest.raises(InvalidInputError):
            make_ingredient('Milk', 'L', 1, '1.00')

    def test_invalid_input_leaves_nothing_behind(self, db_session):
        """Invalid registration writes nothing."""
        with pytest.raises(InvalidInputError):
            register_ingredient('Salt', 'g', 0, '1.00')
        assert Ingredient.query.count() == 0

    def test_update_recomputes_cost(self, make_ingredient):
        """Updating price or waste recomputes the true cost."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        update_ingredient(milk.id, purchase_price='10.00', waste_percent=50)

        refreshed = db.session.get(Ingredient, milk.id)
        assert refreshed.cost_per_ml == Decimal('0.0400')
        # Existing batches keep their own price
        assert list_batches_for_ingredient(milk.id)[0].purchase_price_per_unit == Decimal('0.0100')

    def test_update_refuses_family_change_with_stock(self, make_ingredient):
        """An ingredient with stock cannot change unit family."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        with pytest.raises(InvalidInputError):
            update_ingredient(milk.id, unit='g')

    def test_update_unknown_field(self, make_ingredient):
        """Test unknown update fields are rejected."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        with pytest.raises(InvalidInputError):
            update_ingredient(milk.id, colour='white')


class TestPurchases:

    def test_repeat_purchase_tops_up_with_weighted_average(self, make_ingredient):
        """Repeat purchases top up the batch at a weighted-average price."""
        cups = make_ingredient('Cups', 'units', 100, '300.00')

        record_purchase(cups.id, 100, 'units', '1.00')

        batches = list_batches_for_ingredient(cups.id)
        assert len(batches) == 1
        batch = batches[0]
        assert batch.purchase_price_per_unit == Decimal('2.0000')
        assert batch.purchased_quantity == Decimal('200')
        assert batch.remaining_quantity == Decimal('200')
        assert Purchase.query.filter_by(ingredient_id=cups.id).count() == 1

    def test_purchase_in_compatible_unit_converts_into_batch_unit(self, make_ingredient):
        """Purchases are converted into the batch's unit."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')

        purchase = record_purchase(milk.id, 1, 'L', '2.00')

        batch = db.session.get(StockBatch, purchase.stock_batch_id)
        assert batch.unit == 'ml'
        assert batch.remaining_quantity == Decimal('1500')
        assert batch.purchase_price_per_unit == Decimal('0.0047')
        assert purchase.total_cost == Decimal('2.00')

        refreshed = db.session.get(Ingredient, milk.id)
        assert refreshed.cost_per_ml == Decimal('0.0020')
        assert total_remaining(milk.id, 'L') == Decimal('1.5')

    def test_purchase_after_depletion_opens_new_batch(self, make_ingredient):
        """A purchase after depletion opens a new batch."""
        eggs = make_ingredient('Eggs', 'units', 6, '3.00')
        batch = list_batches_for_ingredient(eggs.id)[0]
        batch.remaining_quantity = Decimal('0')
        db.session.commit()

        record_purchase(eggs.id, 12, 'units', '0.40')

        batches = list_batches_for_ingredient(eggs.id)
        assert len(batches) == 2
        assert batches[1].remaining_quantity == Decimal('12')
        assert batches[1].purchase_price_per_unit == Decimal('0.4000')

    def test_purchase_in_wrong_family_rejected(self, make_ingredient):
        """Test purchases in the wrong unit family are rejected."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        with pytest.raises(IncompatibleUnitsError):
            record_purchase(milk.id, 1, 'kg', '2.00')
        assert total_remaining(milk.id) == Decimal('500')

    @pytest.mark.parametrize('quantity,price', [(0, '1.00'), (-5, '1.00'), (5, '-1.00')])
    def test_invalid_quantity_or_price(self, make_ingredient, quantity, price):
        """Test non-positive quantity or negative price is rejected."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        with pytest.raises(InvalidInputError):
            record_purchase(milk.id, quantity, 'ml', price)
        assert total_remaining(milk.id) == Decimal('500')

    def test_unknown_ingredient(self, db_session):
        """Test purchasing an unknown ingredient raises NotFoundError."""
        with pytest.raises(NotFoundError):
            record_purchase(999, 1, 'ml', '1.00')

    def test_top_up_at_same_price_keeps_average(self, make_ingredient, make_batch):
        """Topping up at the same price keeps the average."""
        oil = make_ingredient('Oil', 'L', 1, '3.00', open_batch=False)
        batch = make_batch(oil, 1, 'L', '3.00')

        top_up_batch(batch, 500, 'ml', '0.003', 0)
        db.session.commit()

        assert batch.purchase_price_per_unit == Decimal('3.0000')
        assert batch.remaining_quantity == Decimal('1.5')


class TestStockQueries:

    def test_batches_listed_oldest_first(self, make_ingredient, make_batch):
        """Batches are listed oldest first."""
        flour = make_ingredient('Flour', 'kg', 1, '1.00', open_batch=False)
        newer = make_batch(flour, 2, 'kg', '1.10', days_ago=1)
        older = make_batch(flour, 1, 'kg', '1.00', days_ago=5)

        assert [b.id for b in list_batches_for_ingredient(flour.id)] == [older.id, newer.id]

    def test_total_remaining_in_requested_unit(self, make_ingredient, make_batch):
        """Total remaining converts to the requested unit."""
        flour = make_ingredient('Flour', 'kg', 1, '1.00', open_batch=False)
        make_batch(flour, 2, 'kg', '1.10')
        make_batch(flour, 500, 'g', '0.002')

        assert total_remaining(flour.id) == Decimal('2500')
        assert total_remaining(flour.id, 'kg') == Decimal('2.5')

    def test_stock_summary(self, make_ingredient):
        """Stock summary reports batches and total in the base unit."""
        milk = make_ingredient('Milk', 'L', 2, '3.00')
        summary = stock_summary(milk.id)
        assert summary['unit'] == 'ml'
        assert summary['total_remaining'] == Decimal('2000')
        assert len(summary['batches']) == 1


class TestIngredientDeletion:

    def test_delete_removes_batches_and_recosts_products(self, cafe):
        """Deleting an ingredient drops its batches and re-costs products."""
        milk, latte = cafe['milk'], cafe['latte']
        milk_id, latte_id = milk.id, latte.id

        delete_ingredient(milk_id)

        assert db.session.get(Ingredient, milk_id) is None
        assert StockBatch.query.filter_by(ingredient_id=milk_id).count() == 0

        product = db.session.get(Product, latte_id)
        assert len(product.recipe_lines) == 1
        assert product.total_cost == Decimal('1.8000')

    def test_conservation_holds_after_purchases(self, make_ingredient):
        """Conservation holds after registration plus a purchase."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00', waste_percent=10)
        record_purchase(milk.id, 1, 'L', '2.00')

        is_valid, error, totals = validate_ledger_conservation(milk.id)
        assert is_valid, error
        assert totals['purchased'] == Decimal('1350')
        assert totals['remaining'] == Decimal('1350')


class TestBulkRegistration:

    def test_registers_every_entry(self, db_session):
        """Each entry becomes an ingredient with its own first batch."""
        created = register_ingredients([
            {'name': 'Milk', 'unit': 'ml', 'quantity': 500, 'purchase_price': '5.00'},
            {'name': 'Flour', 'unit': 'kg', 'quantity': 2, 'purchase_price': '3.00', 'waste_percent': 5},
        ], owner_id=7)

        assert [ingredient.name for ingredient in created] == ['Milk', 'Flour']
        assert all(ingredient.owner_id == 7 for ingredient in created)
        assert total_remaining(created[1].id, 'kg') == Decimal('1.9')

    def test_one_bad_entry_rejects_all(self, db_session):
        """A failing entry rolls back the entries registered before it."""
        with pytest.raises(InvalidInputError):
            register_ingredients([
                {'name': 'Milk', 'unit': 'ml', 'quantity': 500, 'purchase_price': '5.00'},
                {'name': 'Sugar', 'unit': 'g', 'quantity': 0, 'purchase_price': '1.00'},
            ])

        assert Ingredient.query.count() == 0
        assert StockBatch.query.count() == 0

    def test_name_repeated_within_request(self, db_session):
        """Duplicate names inside one request are caught like existing ones."""
        with pytest.raises(InvalidInputError):
            register_ingredients([
                {'name': 'Milk', 'unit': 'ml', 'quantity': 500, 'purchase_price': '5.00'},
                {'name': 'Milk', 'unit': 'ml', 'quantity': 250, 'purchase_price': '3.00'},
            ])
        assert Ingredient.query.count() == 0

    @pytest.mark.parametrize('entries', [[], [{'name': 'Milk'}], ['Milk']])
    def test_malformed_requests(self, db_session, entries):
        """Empty lists, missing fields and non-object entries are rejected."""
        with pytest.raises(InvalidInputError):
            register_ingredients(entries)


class TestReads:

    def test_get_ingredient(self, make_ingredient):
        """Single ingredient lookup, 404-style error when missing."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        assert get_ingredient(milk.id).name == 'Milk'
        with pytest.raises(NotFoundError):
            get_ingredient(999)

    def test_purchases_listed_per_ingredient(self, make_ingredient):
        """Purchase history is filtered by ingredient and oldest first."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        flour = make_ingredient('Flour', 'g', 1000, '2.00')
        record_purchase(milk.id, 1, 'L', '2.00')
        record_purchase(flour.id, 500, 'g', '0.002')
        record_purchase(milk.id, 500, 'ml', '0.003')

        assert len(list_purchases()) == 3
        assert [p.quantity for p in list_purchases(ingredient_id=milk.id)] == [Decimal('1'), Decimal('500')]

    def test_batches_across_ingredients(self, make_ingredient):
        """Batch listing spans ingredients and can hide depleted batches."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00')
        make_ingredient('Flour', 'g', 1000, '2.00')
        batch = list_batches_for_ingredient(milk.id)[0]
        batch.remaining_quantity = Decimal('0')
        db.session.commit()

        assert len(list_batches()) == 2
        assert len(list_batches(include_depleted=False)) == 1
        assert get_batch(batch.id).ingredient_id == milk.id
        with pytest.raises(NotFoundError):
            get_batch(999)


class TestBatchConstraints:

    def test_remaining_cannot_exceed_usable(self, make_ingredient):
        """The database rejects a batch credited beyond its usable quantity."""
        milk = make_ingredient('Milk', 'ml', 500, '5.00', waste_percent=10)
        batch = list_batches_for_ingredient(milk.id)[0]
        batch.remaining_quantity = Decimal(batch.usable_quantity) + 1

        with pytest.raises(IntegrityError):
            db.session.commit()
        db.session.rollback()

    def test_remaining_plus_wasted_may_reach_usable(self, make_ingredient):
        """Fractional stock that exactly fills the usable quantity is accepted."""
        milk = make_ingredient('Milk', 'L', '0.3', '1.00')
        batch = list_batches_for_ingredient(milk.id)[0]
        batch.remaining_quantity = Decimal('0.1')
        batch.wasted_quantity = Decimal('0.2')
        db.session.commit()

        assert db.session.get(StockBatch, batch.id).wasted_quantity == Decimal('0.2')
