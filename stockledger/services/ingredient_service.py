import logging
from typing import List, Optional

from ..models import Ingredient, ProductRecipeLine, SaleAllocation, db
from .costing_engine import apply_costs, calculate_costs, validate_waste_percent
from .errors import InvalidInputError, NotFoundError
from .stock_ledger import create_batch, unit_of_work
from .unit_conversion import parse_unit, round_money, round_quantity, to_decimal

logger = logging.getLogger(__name__)

_BULK_FIELDS = ('name', 'unit', 'quantity', 'purchase_price', 'waste_percent', 'supplier', 'owner_id')


def get_ingredient(ingredient_id) -> Ingredient:
    ingredient = db.session.get(Ingredient, ingredient_id)
    if not ingredient:
        raise NotFoundError('Ingredient', ingredient_id)
    return ingredient


def _validate_name(name) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError("Ingredient name is required", field='name')
    return name.strip()


def _ensure_unique_name(name, owner_id, exclude_id=None) -> None:
    query = Ingredient.query.filter(Ingredient.name == name)
    if owner_id is None:
        query = query.filter(Ingredient.owner_id.is_(None))
    else:
        query = query.filter(Ingredient.owner_id == owner_id)
    if exclude_id is not None:
        query = query.filter(Ingredient.id != exclude_id)
    if query.first():
        raise InvalidInputError("Ingredient already exists", field='name')


def register_ingredient(
    name,
    unit,
    quantity,
    purchase_price,
    waste_percent=0,
    supplier: Optional[str] = None,
    owner_id: Optional[int] = None,
    open_batch: bool = True,
) -> Ingredient:
    """
    Register an ingredient from its first purchase.

    ``purchase_price`` is the total paid for ``quantity`` ``unit``. The true
    cost per base unit is derived immediately and, unless ``open_batch`` is
    False, the purchase opens the ingredient's first stock batch.
    """
    clean_name = _validate_name(name)
    parsed = parse_unit(unit)
    amount = to_decimal(quantity)
    if amount <= 0:
        raise InvalidInputError("Quantity must be a positive number", field='quantity')
    price = to_decimal(purchase_price, 'purchase_price')
    waste = validate_waste_percent(waste_percent)
    costs = calculate_costs(price, waste, parsed, amount)

    with unit_of_work():
        _ensure_unique_name(clean_name, owner_id)
        ingredient = Ingredient(
            name=clean_name,
            unit=parsed.value,
            quantity=round_quantity(amount, parsed),
            purchase_price=round_money(price),
            waste_percent=waste,
            supplier=supplier,
            owner_id=owner_id,
        )
        apply_costs(ingredient, costs)
        db.session.add(ingredient)
        db.session.flush()

        if open_batch:
            create_batch(ingredient, amount, parsed, price / amount, waste_percent=waste)

        logger.info(f"INGREDIENT: Registered {ingredient.id} '{ingredient.name}' in {parsed}")

    return ingredient


def register_ingredients(entries, owner_id: Optional[int] = None) -> List[Ingredient]:
    """
    Register several ingredients at once, all or nothing.

    Each entry takes the keyword arguments of register_ingredient. Any invalid
    entry, including a name repeated within the batch, rolls back every entry.
    """
    entries = list(entries or [])
    if not entries:
        raise InvalidInputError("No ingredients provided")

    with unit_of_work():
        created = []
        for index, entry in enumerate(entries):
            if not isinstance(entry, dict):
                raise InvalidInputError(f"Ingredient entry {index} must be an object")
            missing = [key for key in ('name', 'unit', 'quantity', 'purchase_price') if entry.get(key) in (None, '')]
            if missing:
                raise InvalidInputError(f"Ingredient entry {index} is missing {', '.join(missing)}", field=missing[0])
            fields = {key: entry[key] for key in _BULK_FIELDS if key in entry}
            fields.setdefault('owner_id', owner_id)
            created.append(register_ingredient(**fields))

        logger.info(f"INGREDIENT: Registered {len(created)} ingredient(s) in bulk")

    return created


def update_ingredient(ingredient_id, **fields) -> Ingredient:
    """
    Update declared fields and recompute the true cost when price, waste,
    unit or quantity change. Existing batches keep their own units and prices.
    """
    allowed = {'name', 'unit', 'quantity', 'purchase_price', 'waste_percent', 'supplier'}
    unknown = set(fields) - allowed
    if unknown:
        raise InvalidInputError(f"Unknown ingredient fields: {', '.join(sorted(unknown))}")

    with unit_of_work():
        ingredient = get_ingredient(ingredient_id)

        if 'name' in fields:
            clean_name = _validate_name(fields['name'])
            _ensure_unique_name(clean_name, ingredient.owner_id, exclude_id=ingredient.id)
            ingredient.name = clean_name
        if 'supplier' in fields:
            ingredient.supplier = fields['supplier']

        cost_inputs = {'unit', 'quantity', 'purchase_price', 'waste_percent'}
        if cost_inputs & set(fields):
            unit = parse_unit(fields.get('unit', ingredient.unit))
            if 'unit' in fields and ingredient.batches and parse_unit(ingredient.unit).family != unit.family:
                raise InvalidInputError(
                    "Cannot move an ingredient with stock to a different unit family", field='unit'
                )
            quantity = to_decimal(fields.get('quantity', ingredient.quantity))
            price = to_decimal(fields.get('purchase_price', ingredient.purchase_price), 'purchase_price')
            waste = validate_waste_percent(fields.get('waste_percent', ingredient.waste_percent))
            apply_costs(ingredient, calculate_costs(price, waste, unit, quantity))

            ingredient.unit = unit.value
            ingredient.quantity = round_quantity(quantity, unit)
            ingredient.purchase_price = round_money(price)
            ingredient.waste_percent = waste
            db.session.flush()

            from .product_costing import recompute_products_for_ingredient
            recompute_products_for_ingredient(ingredient.id)

        db.session.flush()
        logger.info(f"INGREDIENT: Updated {ingredient.id} ({', '.join(sorted(fields))})")

    return ingredient


def delete_ingredient(ingredient_id) -> None:
    """
    Delete an ingredient with its batches, purchases and waste records.

    Recipe lines using it are removed and the affected products re-costed.
    """
    with unit_of_work():
        ingredient = get_ingredient(ingredient_id)

        lines = ProductRecipeLine.query.filter(ProductRecipeLine.ingredient_id == ingredient.id).all()
        affected = {line.product for line in lines}
        for line in lines:
            line.product.recipe_lines.remove(line)
        db.session.flush()

        batch_ids = [batch.id for batch in ingredient.batches]
        if batch_ids:
            SaleAllocation.query.filter(SaleAllocation.stock_batch_id.in_(batch_ids)).delete(
                synchronize_session='fetch'
            )
        db.session.delete(ingredient)
        db.session.flush()

        from .product_costing import recompute_product
        for product in sorted(affected, key=lambda p: p.id):
            recompute_product(product.id)

        logger.info(f"INGREDIENT: Deleted {ingredient_id}, re-costed {len(affected)} product(s)")


def list_ingredients(owner_id=None) -> List[Ingredient]:
    query = Ingredient.query
    if owner_id is not None:
        query = Ingredient.for_owner(owner_id)
    return query.order_by(Ingredient.name.asc()).all()


def stock_summary(ingredient_id) -> dict:
    from .stock_ledger import list_batches_for_ingredient, total_remaining

    ingredient = get_ingredient(ingredient_id)
    base = parse_unit(ingredient.unit).base
    return {
        'ingredient': ingredient.to_dict(),
        'batches': [batch.to_dict() for batch in list_batches_for_ingredient(ingredient.id)],
        'total_remaining': total_remaining(ingredient.id),
        'unit': base.value,
    }


__all__ = [
    'delete_ingredient',
    'get_ingredient',
    'list_ingredients',
    'register_ingredient',
    'register_ingredients',
    'stock_summary',
    'update_ingredient',
]
