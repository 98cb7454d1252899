"""
Management commands for ledger maintenance
"""
import sys

import click
from flask.cli import with_appcontext

from .extensions import db
from .models import Ingredient
from .services.stock_ledger import validate_ledger_conservation


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create all tables directly (local development only; use migrations elsewhere)"""
    db.create_all()
    print("✅ Database tables created/verified")


@click.command('validate-ledger')
@click.option('--ingredient-id', type=int, default=None, help='Only check this ingredient')
@with_appcontext
def validate_ledger_command(ingredient_id):
    """Check stock conservation for every ingredient; exits non-zero on mismatch"""
    if ingredient_id is not None:
        ingredient_ids = [ingredient_id]
    else:
        ingredient_ids = [row.id for row in Ingredient.query.order_by(Ingredient.id).all()]

    failures = 0
    for current_id in ingredient_ids:
        is_valid, error_msg, totals = validate_ledger_conservation(current_id)
        if is_valid:
            print(
                f"✅ Ingredient {current_id}: purchased={totals['purchased']} remaining={totals['remaining']} "
                f"wasted={totals['wasted']} consumed={totals['consumed']} {totals['unit']}"
            )
        else:
            failures += 1
            print(f"❌ Ingredient {current_id}: {error_msg}")

    if failures:
        print(f"❌ {failures} of {len(ingredient_ids)} ingredient(s) failed conservation checks")
        sys.exit(1)
    print(f"✅ Ledger consistent for {len(ingredient_ids)} ingredient(s)")


def register_commands(app):
    """Register CLI commands"""
    app.cli.add_command(init_db_command)
    app.cli.add_command(validate_ledger_command)
