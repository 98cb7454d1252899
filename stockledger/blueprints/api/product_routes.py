from flask import request

from ...services.product_costing import (
    create_product,
    delete_product,
    get_product,
    ingredient_swap,
    list_products,
    max_producible_quantity,
    set_sell_price,
    update_product,
    what_if_price_change,
)
from ...utils.api_responses import APIResponse
from . import api_bp


@api_bp.route('/products', methods=['GET'])
def products():
    records = list_products(owner_id=request.args.get('owner_id', type=int))
    return APIResponse.success([product.to_dict() for product in records])


@api_bp.route('/products/<int:product_id>', methods=['GET'])
def product_detail(product_id):
    """Product with its recipe lines and cached margins"""
    return APIResponse.success(get_product(product_id).to_dict())


@api_bp.route('/products', methods=['POST'])
def add_product():
    data = APIResponse.handle_request_content()
    missing = [field for field in ('name', 'sell_price') if data.get(field) in (None, '')]
    if missing:
        return APIResponse.validation_error({field: ['This field is required.'] for field in missing})

    product = create_product(
        name=data['name'],
        sell_price=data['sell_price'],
        recipe=data.get('recipe') or data.get('ingredients') or [],
        category=data.get('category'),
        owner_id=data.get('owner_id'),
    )
    return APIResponse.success(product.to_dict(), message="Product created", status_code=201)


@api_bp.route('/products/<int:product_id>', methods=['PUT'])
def edit_product(product_id):
    data = APIResponse.handle_request_content()
    product = update_product(
        product_id,
        name=data.get('name'),
        sell_price=data.get('sell_price'),
        category=data.get('category'),
        recipe=data.get('recipe'),
    )
    return APIResponse.success(product.to_dict(), message="Product updated")


@api_bp.route('/products/<int:product_id>', methods=['DELETE'])
def remove_product(product_id):
    delete_product(product_id)
    return APIResponse.success(message="Product deleted")


@api_bp.route('/products/<int:product_id>/sell-price', methods=['POST'])
def quick_price_change(product_id):
    data = APIResponse.handle_request_content()
    if data.get('new_sell_price') in (None, ''):
        return APIResponse.validation_error({'new_sell_price': ['This field is required.']})
    product = set_sell_price(product_id, data['new_sell_price'])
    return APIResponse.success(product.to_dict(include_recipe=False), message="Sell price updated")


@api_bp.route('/products/what-if', methods=['POST'])
def what_if():
    """Simulate a price change across products without saving anything"""
    data = APIResponse.handle_request_content()
    if not data.get('product_ids') or data.get('price_delta') is None:
        return APIResponse.validation_error({'product_ids': ['Product IDs and price delta are required.']})
    results = what_if_price_change(data['product_ids'], data['price_delta'])
    return APIResponse.success(results)


@api_bp.route('/products/<int:product_id>/ingredient-swap', methods=['POST'])
def swap_ingredient(product_id):
    data = APIResponse.handle_request_content()
    missing = [field for field in ('original_ingredient_id', 'new_ingredient_id') if data.get(field) is None]
    if missing:
        return APIResponse.validation_error({field: ['This field is required.'] for field in missing})
    result = ingredient_swap(
        product_id,
        data['original_ingredient_id'],
        data['new_ingredient_id'],
        upcharge=data.get('upcharge'),
    )
    return APIResponse.success(result)


@api_bp.route('/products/<int:product_id>/max-producible', methods=['GET'])
def max_producible(product_id):
    return APIResponse.success(max_producible_quantity(product_id))
