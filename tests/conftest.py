"""
Pytest configuration and shared fixtures for ledger tests.
"""
import os
import tempfile
from datetime import timedelta

import pytest

from stockledger import create_app
from stockledger.extensions import db
from stockledger.utils.timezone_utils import TimezoneUtils


@pytest.fixture(scope='function')
def app():
    """Create and configure a new app instance backed by a throwaway SQLite file."""
    db_fd, db_path = tempfile.mkstemp(suffix='.db')

    app = create_app({
        'TESTING': True,
        'DATABASE_URL': f'sqlite:///{db_path}',
        'SECRET_KEY': 'test-secret-key',
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()

    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def app_context(app):
    """Provide an application context for service-level tests."""
    with app.app_context():
        yield


@pytest.fixture
def db_session(app_context):
    yield db.session
    db.session.rollback()


@pytest.fixture
def make_ingredient(db_session):
    """Register an ingredient through the service; its first purchase opens a batch."""
    from stockledger.services.ingredient_service import register_ingredient

    def _make(name, unit, quantity, purchase_price, waste_percent=0, open_batch=True):
        return register_ingredient(
            name=name,
            unit=unit,
            quantity=quantity,
            purchase_price=purchase_price,
            waste_percent=waste_percent,
            open_batch=open_batch,
        )

    return _make


@pytest.fixture
def make_batch(db_session):
    """Open a batch directly, purchased ``days_ago`` days in the past."""
    from stockledger.services.stock_ledger import create_batch

    def _make(ingredient, quantity, unit, price_per_unit, days_ago=0):
        batch = create_batch(
            ingredient,
            quantity,
            unit,
            price_per_unit,
            purchased_at=TimezoneUtils.utc_now() - timedelta(days=days_ago),
        )
        db.session.commit()
        return batch

    return _make


@pytest.fixture
def make_product(db_session):
    from stockledger.services.product_costing import create_product

    def _make(name, sell_price, recipe=()):
        return create_product(name=name, sell_price=sell_price, recipe=list(recipe))

    return _make


@pytest.fixture
def cafe(make_ingredient, make_product):
    """Milk at 0.01/ml and coffee at 0.10/g, and a latte using both."""
    milk = make_ingredient('Milk', 'ml', 500, '5.00')
    coffee = make_ingredient('Coffee Beans', 'g', 50, '5.00')
    latte = make_product('Latte', '4.50', [
        {'ingredient_id': milk.id, 'quantity': 200, 'unit': 'ml'},
        {'ingredient_id': coffee.id, 'quantity': 18, 'unit': 'g'},
    ])
    return {'milk': milk, 'coffee': coffee, 'latte': latte}
