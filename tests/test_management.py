from decimal import Decimal

from stockledger.extensions import db
from stockledger.models import StockBatch
from stockledger.services.ingredient_service import register_ingredient
from stockledger.services.product_costing import create_product
from stockledger.services.sale_service import record_sale


def _seed(app):
    with app.app_context():
        milk = register_ingredient('Milk', 'ml', 500, '5.00')
        create_product('Warm Milk', '2.00', [{'ingredient_id': milk.id, 'quantity': 250, 'unit': 'ml'}])
        product_id = create_product('Milk Shot', '1.00', [
            {'ingredient_id': milk.id, 'quantity': 50, 'unit': 'ml'},
        ]).id
        record_sale(product_id, 2)
        return milk.id


def test_validate_ledger_passes_on_consistent_stock(app, runner):
    """validate-ledger reports each ingredient and exits 0."""
    milk_id = _seed(app)

    result = runner.invoke(args=['validate-ledger'])

    assert result.exit_code == 0, result.output
    assert f'✅ Ingredient {milk_id}' in result.output
    assert 'consumed=100.00' in result.output
    assert 'Ledger consistent for 1 ingredient(s)' in result.output


def test_validate_ledger_fails_on_drift(app, runner):
    """validate-ledger exits 1 when stock drifts."""
    milk_id = _seed(app)
    with app.app_context():
        batch = StockBatch.query.filter_by(ingredient_id=milk_id).first()
        batch.remaining_quantity = Decimal(batch.remaining_quantity) + 5
        db.session.commit()

    result = runner.invoke(args=['validate-ledger', '--ingredient-id', str(milk_id)])

    assert result.exit_code == 1
    assert '❌' in result.output


def test_init_db_is_idempotent(runner):
    """init-db can run against existing tables."""
    result = runner.invoke(args=['init-db'])
    assert result.exit_code == 0
    assert 'Database tables created/verified' in result.output
