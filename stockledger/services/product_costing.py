"""
Product costing: recipe line costs, totals, margins and profitability status.

Margins and status are recomputed whenever a product's price or recipe
changes and whenever an ingredient's true cost changes. The what-if and
ingredient-swap simulations never write.
"""

import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, List

from ..models import Ingredient, Product, ProductRecipeLine, ProductStatus, Sale, db
from .costing_engine import line_cost, true_cost_per_base_unit
from .errors import InvalidInputError, NotFoundError
from .stock_ledger import StockRequirement, total_remaining, unit_of_work
from .unit_conversion import (
    convert_quantity,
    parse_unit,
    round_cost,
    round_money,
    round_quantity,
    to_base_unit,
    to_decimal,
)

logger = logging.getLogger(__name__)

_HUNDRED = Decimal('100')
_PERCENT_PLACES = Decimal('0.01')


@dataclass(frozen=True)
class MarginSnapshot:
    total_cost: Decimal
    margin_amount: Decimal
    margin_percent: Decimal
    status: str


@dataclass(frozen=True)
class RecipeLineInput:
    ingredient_id: int
    quantity: Decimal
    unit: str
    is_optional: bool = False


def derive_status(margin_amount) -> str:
    margin = to_decimal(margin_amount, 'margin_amount')
    if margin > 0:
        return ProductStatus.PROFITABLE
    if margin == 0:
        return ProductStatus.BREAKING_EVEN
    return ProductStatus.LOSING_MONEY


def compute_margins(sell_price, total_cost) -> MarginSnapshot:
    """margin = sell - cost; margin_percent = margin / sell * 100 (0 when sell is 0)."""
    sell = to_decimal(sell_price, 'sell_price')
    cost = round_cost(total_cost)
    margin = round_cost(sell - cost)
    if sell > 0:
        percent = (margin / sell * _HUNDRED).quantize(_PERCENT_PLACES, rounding=ROUND_HALF_UP)
    else:
        percent = Decimal('0.00')
    return MarginSnapshot(cost, margin, percent, derive_status(margin))


def _apply_margins(product: Product, snapshot: MarginSnapshot) -> None:
    product.total_cost = snapshot.total_cost
    product.margin_amount = snapshot.margin_amount
    product.margin_percent = snapshot.margin_percent
    product.status = snapshot.status


def get_product(product_id) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError('Product', product_id)
    return product


def list_products(owner_id=None) -> List[Product]:
    query = Product.query if owner_id is None else Product.for_owner(owner_id)
    return query.order_by(Product.name.asc(), Product.id.asc()).all()


def _get_ingredient(ingredient_id) -> Ingredient:
    ingredient = db.session.get(Ingredient, ingredient_id)
    if not ingredient:
        raise NotFoundError('Ingredient', ingredient_id)
    return ingredient


def _validate_sell_price(sell_price) -> Decimal:
    price = to_decimal(sell_price, 'sell_price')
    if price <= 0:
        raise InvalidInputError("Sell price must be positive", field='sell_price')
    return round_money(price)


def _coerce_line(entry) -> RecipeLineInput:
    if isinstance(entry, RecipeLineInput):
        return entry
    if isinstance(entry, dict):
        ingredient_id = entry.get('ingredient_id', entry.get('ingredientId'))
        if ingredient_id is None or not entry.get('unit'):
            raise InvalidInputError("Each recipe line needs an ingredient id, a quantity and a unit", field='recipe')
        return RecipeLineInput(
            ingredient_id=ingredient_id,
            quantity=entry.get('quantity'),
            unit=entry['unit'],
            is_optional=bool(entry.get('is_optional', False)),
        )
    raise InvalidInputError("Each recipe line needs an ingredient id, a quantity and a unit", field='recipe')


def price_recipe_line(ingredient, quantity, unit):
    """Return (cost per base unit, line cost) for ``quantity`` ``unit`` of an ingredient."""
    cost_per_unit = true_cost_per_base_unit(ingredient, unit)
    return round_cost(cost_per_unit), line_cost(quantity, unit, cost_per_unit)


def _build_recipe_lines(product: Product, recipe) -> None:
    lines = []
    for entry in recipe:
        line_input = _coerce_line(entry)
        quantity = to_decimal(line_input.quantity)
        if quantity <= 0:
            raise InvalidInputError("Recipe quantity must be positive", field='quantity')
        parsed = parse_unit(line_input.unit)
        ingredient = _get_ingredient(line_input.ingredient_id)
        cost_per_unit, cost = price_recipe_line(ingredient, quantity, parsed)
        lines.append(ProductRecipeLine(
            ingredient_id=ingredient.id,
            ingredient=ingredient,
            quantity=round_quantity(quantity, parsed),
            unit=parsed.value,
            is_optional=line_input.is_optional,
            cost_per_unit=cost_per_unit,
            line_cost=cost,
        ))
    product.recipe_lines = lines


def _reprice(product: Product) -> MarginSnapshot:
    total = Decimal(0)
    for line in product.recipe_lines:
        ingredient = line.ingredient or _get_ingredient(line.ingredient_id)
        line.cost_per_unit, line.line_cost = price_recipe_line(ingredient, line.quantity, line.unit)
        total += line.line_cost
    snapshot = compute_margins(product.sell_price, total)
    _apply_margins(product, snapshot)
    return snapshot


def create_product(name, sell_price, recipe=(), category=None, owner_id=None) -> Product:
    if not isinstance(name, str) or not name.strip():
        raise InvalidInputError("Product name is required", field='name')

    with unit_of_work():
        product = Product(
            name=name.strip(),
            category=category,
            sell_price=_validate_sell_price(sell_price),
            owner_id=owner_id,
            quantity_sold=0,
        )
        _build_recipe_lines(product, recipe or ())
        snapshot = _reprice(product)
        db.session.add(product)
        db.session.flush()
        logger.info(
            f"PRODUCT: Created {product.id} '{product.name}' cost={snapshot.total_cost} "
            f"margin={snapshot.margin_amount} ({snapshot.status})"
        )
    return product


def update_product(product_id, name=None, sell_price=None, category=None, recipe=None) -> Product:
    """Update fields; a given recipe replaces the existing one. Margins are always recomputed."""
    with unit_of_work():
        product = get_product(product_id)
        if name is not None:
            if not isinstance(name, str) or not name.strip():
                raise InvalidInputError("Product name is required", field='name')
            product.name = name.strip()
        if category is not None:
            product.category = category
        if sell_price is not None:
            product.sell_price = _validate_sell_price(sell_price)
        if recipe is not None:
            _build_recipe_lines(product, recipe)
        snapshot = _reprice(product)
        db.session.flush()
        logger.info(f"PRODUCT: Updated {product.id} margin={snapshot.margin_amount} ({snapshot.status})")
    return product


def recompute_product(product_id) -> MarginSnapshot:
    with unit_of_work():
        product = get_product(product_id)
        snapshot = _reprice(product)
        db.session.flush()
    return snapshot


def recompute_products_for_ingredient(ingredient_id) -> List[Product]:
    """Re-cost every product whose recipe uses the ingredient."""
    products = (
        Product.query.join(ProductRecipeLine, Product.recipe_lines)
        .filter(ProductRecipeLine.ingredient_id == ingredient_id)
        .distinct()
        .order_by(Product.id)
        .all()
    )
    for product in products:
        _reprice(product)
    if products:
        db.session.flush()
        logger.info(f"PRODUCT: Re-costed {len(products)} product(s) after ingredient {ingredient_id} changed")
    return products


def set_sell_price(product_id, new_sell_price) -> Product:
    """Quick action: change the sell price and re-derive margin and status."""
    price = _validate_sell_price(new_sell_price)
    with unit_of_work():
        product = get_product(product_id)
        product.sell_price = price
        _apply_margins(product, compute_margins(price, product.total_cost))
        db.session.flush()
    return product


def delete_product(product_id) -> None:
    """Delete a product and its recipe; past sales keep their product name."""
    with unit_of_work():
        product = get_product(product_id)
        for sale in Sale.query.filter(Sale.product_id == product.id).all():
            sale.product_name = sale.product_name or product.name
            sale.product_id = None
        db.session.delete(product)
        db.session.flush()
        logger.info(f"PRODUCT: Deleted {product_id}")


def what_if_price_change(product_ids: Iterable[int], price_delta) -> List[dict]:
    """Hypothetical margins if each product's price moved by ``price_delta``. Unknown ids are skipped."""
    delta = to_decimal(price_delta, 'price_delta')
    ids = list(product_ids or ())
    if not ids:
        raise InvalidInputError("Product IDs are required", field='product_ids')

    results = []
    for product_id in ids:
        product = db.session.get(Product, product_id)
        if not product:
            continue
        new_price = Decimal(product.sell_price) + delta
        snapshot = compute_margins(new_price, product.total_cost)
        results.append({
            'product_id': product.id,
            'new_sell_price': new_price,
            'new_margin_amount': snapshot.margin_amount,
            'new_margin_percent': snapshot.margin_percent,
            'new_status': snapshot.status,
        })
    return results


def ingredient_swap(product_id, original_ingredient_id, new_ingredient_id, upcharge=None) -> dict:
    """
    Margin impact of substituting one recipe ingredient for another.

    Recipe quantities and units are kept; only the ingredient's true cost
    changes. With an upcharge, it is covered when sell + upcharge >= new cost;
    otherwise when the new margin is not negative.
    """
    product = get_product(product_id)
    replacement = _get_ingredient(new_ingredient_id)
    extra = to_decimal(upcharge, 'upcharge') if upcharge is not None else None

    if not any(line.ingredient_id == original_ingredient_id for line in product.recipe_lines):
        raise InvalidInputError(
            f"Ingredient {original_ingredient_id} is not part of product {product_id}",
            field='original_ingredient_id',
        )

    new_total = Decimal(0)
    for line in product.recipe_lines:
        ingredient = replacement if line.ingredient_id == original_ingredient_id else line.ingredient
        _, cost = price_recipe_line(ingredient, line.quantity, line.unit)
        new_total += cost

    original = compute_margins(product.sell_price, product.total_cost)
    swapped = compute_margins(product.sell_price, new_total)
    if extra is not None:
        covered = Decimal(product.sell_price) + extra - swapped.total_cost >= 0
    else:
        covered = swapped.margin_percent >= 0

    return {
        'product_id': product.id,
        'original_margin_percent': original.margin_percent,
        'new_margin_percent': swapped.margin_percent,
        'margin_delta': swapped.margin_percent - original.margin_percent,
        'new_total_cost': swapped.total_cost,
        'upcharge_covered': covered,
    }


def recipe_requirements(product: Product, quantity=1) -> List[StockRequirement]:
    """Stock a sale of ``quantity`` units needs, one requirement per recipe line."""
    multiplier = to_decimal(quantity)
    return [
        StockRequirement(line.ingredient_id, Decimal(line.quantity) * multiplier, line.unit)
        for line in product.recipe_lines
    ]


def max_producible_quantity(product_id, include_optional=True) -> dict:
    """
    How many units current stock can cover, and what each ingredient would
    have left after producing them.
    """
    product = get_product(product_id)
    needed = {}
    for line in product.recipe_lines:
        if line.is_optional and not include_optional:
            continue
        base_qty = to_base_unit(line.quantity, line.unit)
        needed[line.ingredient_id] = needed.get(line.ingredient_id, Decimal(0)) + base_qty

    if not needed:
        return {'product_id': product.id, 'max_quantity': 0, 'stock_updates': []}

    available = {ingredient_id: total_remaining(ingredient_id) for ingredient_id in needed}
    max_quantity = min(int(available[i] // needed[i]) for i in needed)

    stock_updates = []
    for ingredient_id in sorted(needed):
        ingredient = _get_ingredient(ingredient_id)
        left_base = available[ingredient_id] - needed[ingredient_id] * max_quantity
        stock_updates.append({
            'ingredient_id': ingredient_id,
            'remaining_quantity': convert_quantity(left_base, parse_unit(ingredient.unit).base, ingredient.unit),
            'unit': parse_unit(ingredient.unit).value,
        })

    return {'product_id': product.id, 'max_quantity': max_quantity, 'stock_updates': stock_updates}


__all__ = [
    'MarginSnapshot',
    'RecipeLineInput',
    'compute_margins',
    'create_product',
    'delete_product',
    'derive_status',
    'get_product',
    'ingredient_swap',
    'list_products',
    'max_producible_quantity',
    'price_recipe_line',
    'recipe_requirements',
    'recompute_product',
    'recompute_products_for_ingredient',
    'set_sell_price',
    'update_product',
    'what_if_price_change',
]
