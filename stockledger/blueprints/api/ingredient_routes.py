from flask import request

from ...services.ingredient_service import (
    delete_ingredient,
    get_ingredient,
    list_ingredients,
    register_ingredient,
    register_ingredients,
    stock_summary,
    update_ingredient,
)
from ...utils.api_responses import APIResponse
from . import api_bp


@api_bp.route('/ingredients', methods=['GET'])
def get_ingredients():
    owner_id = request.args.get('owner_id', type=int)
    return APIResponse.success([ingredient.to_dict() for ingredient in list_ingredients(owner_id=owner_id)])


@api_bp.route('/ingredients', methods=['POST'])
def create_ingredient():
    """Register an ingredient from its first purchase; purchase_price is the total paid for quantity"""
    data = APIResponse.handle_request_content()
    missing = [field for field in ('name', 'unit', 'quantity', 'purchase_price') if data.get(field) in (None, '')]
    if missing:
        return APIResponse.validation_error({field: ['This field is required.'] for field in missing})

    ingredient = register_ingredient(
        name=data['name'],
        unit=data['unit'],
        quantity=data['quantity'],
        purchase_price=data['purchase_price'],
        waste_percent=data.get('waste_percent', 0),
        supplier=data.get('supplier'),
        owner_id=data.get('owner_id'),
    )
    return APIResponse.success(ingredient.to_dict(), message="Ingredient created", status_code=201)


@api_bp.route('/ingredients/bulk', methods=['POST'])
def create_ingredients_bulk():
    """Register a list of ingredients; one bad entry rejects the whole list"""
    data = request.get_json(silent=True)
    owner_id = None
    entries = data
    if isinstance(data, dict):
        entries, owner_id = data.get('ingredients'), data.get('owner_id')
    if not isinstance(entries, list) or not entries:
        return APIResponse.validation_error({'ingredients': ['A non-empty list of ingredients is required.']})

    ingredients = register_ingredients(entries, owner_id=owner_id)
    return APIResponse.success(
        [ingredient.to_dict() for ingredient in ingredients],
        message=f"{len(ingredients)} ingredient(s) created",
        status_code=201,
    )


@api_bp.route('/ingredients/<int:ingredient_id>', methods=['GET'])
def ingredient_detail(ingredient_id):
    return APIResponse.success(get_ingredient(ingredient_id).to_dict())


@api_bp.route('/ingredients/<int:ingredient_id>', methods=['PUT'])
def edit_ingredient(ingredient_id):
    data = APIResponse.handle_request_content()
    fields = {key: data[key] for key in ('name', 'unit', 'quantity', 'purchase_price', 'waste_percent', 'supplier') if key in data}
    ingredient = update_ingredient(ingredient_id, **fields)
    return APIResponse.success(ingredient.to_dict(), message="Ingredient updated")


@api_bp.route('/ingredients/<int:ingredient_id>', methods=['DELETE'])
def remove_ingredient(ingredient_id):
    delete_ingredient(ingredient_id)
    return APIResponse.success(message="Ingredient deleted")


@api_bp.route('/ingredients/<int:ingredient_id>/stock', methods=['GET'])
def ingredient_stock(ingredient_id):
    """Batches oldest first plus total remaining in the base unit"""
    return APIResponse.success(stock_summary(ingredient_id))
