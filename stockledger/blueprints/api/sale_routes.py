from flask import request

from ...services.sale_service import delete_sale, list_sales, record_sale
from ...utils.api_responses import APIResponse
from . import api_bp


@api_bp.route('/sales', methods=['POST'])
def create_sale():
    """Record a sale; the recipe's stock is deducted atomically or not at all"""
    data = APIResponse.handle_request_content()
    if data.get('product_id') is None and not data.get('product_name'):
        return APIResponse.validation_error({'product_id': ['Product ID or product name is required.']})

    sale = record_sale(
        product_id=data.get('product_id'),
        quantity=data.get('quantity', 1),
        product_name=data.get('product_name'),
        total_amount=data.get('total_amount'),
    )
    return APIResponse.success(sale.to_dict(), message="Sale recorded", status_code=201)


@api_bp.route('/sales/<int:sale_id>', methods=['DELETE'])
def remove_sale(sale_id):
    delete_sale(sale_id)
    return APIResponse.success(message="Sale deleted and stock re-credited")


@api_bp.route('/sales', methods=['GET'])
def sales():
    records = list_sales(product_id=request.args.get('product_id', type=int))
    return APIResponse.success([sale.to_dict() for sale in records])
