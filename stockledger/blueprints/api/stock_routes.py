from flask import request

from ...services.stock_ledger import (
    get_batch,
    list_batches,
    list_purchases,
    list_waste_records,
    record_purchase,
    record_waste,
)
from ...utils.api_responses import APIResponse
from . import api_bp


@api_bp.route('/purchases', methods=['POST'])
def create_purchase():
    """Record a repeat purchase; purchase_price here is the price per unit, not the total"""
    data = APIResponse.handle_request_content()
    missing = [field for field in ('ingredient_id', 'quantity', 'unit', 'purchase_price') if data.get(field) in (None, '')]
    if missing:
        return APIResponse.validation_error({field: ['This field is required.'] for field in missing})

    purchase = record_purchase(
        ingredient_id=data['ingredient_id'],
        quantity=data['quantity'],
        unit=data['unit'],
        purchase_price=data['purchase_price'],
    )
    return APIResponse.success(purchase.to_dict(), message="Purchase recorded", status_code=201)


@api_bp.route('/purchases', methods=['GET'])
def purchases():
    records = list_purchases(ingredient_id=request.args.get('ingredient_id', type=int))
    return APIResponse.success([purchase.to_dict() for purchase in records])


@api_bp.route('/stock', methods=['GET'])
def stock_batches():
    """Batches in allocation order; pass include_depleted=false to hide empty ones"""
    include_depleted = request.args.get('include_depleted', 'true').strip().lower() not in {'0', 'false', 'no'}
    batches = list_batches(
        ingredient_id=request.args.get('ingredient_id', type=int),
        include_depleted=include_depleted,
    )
    return APIResponse.success([batch.to_dict() for batch in batches])


@api_bp.route('/stock/<int:stock_batch_id>', methods=['GET'])
def stock_batch_detail(stock_batch_id):
    return APIResponse.success(get_batch(stock_batch_id).to_dict())


@api_bp.route('/waste', methods=['POST'])
def create_waste_record():
    data = APIResponse.handle_request_content()
    missing = [field for field in ('stock_batch_id', 'quantity', 'unit', 'reason') if data.get(field) in (None, '')]
    if missing:
        return APIResponse.validation_error({field: ['This field is required.'] for field in missing})

    record = record_waste(
        stock_batch_id=data['stock_batch_id'],
        quantity=data['quantity'],
        unit=data['unit'],
        reason=data['reason'],
    )
    return APIResponse.success(record.to_dict(), message="Waste recorded", status_code=201)


@api_bp.route('/waste', methods=['GET'])
def waste_records():
    records = list_waste_records(
        stock_batch_id=request.args.get('stock_batch_id', type=int),
        ingredient_id=request.args.get('ingredient_id', type=int),
    )
    return APIResponse.success([record.to_dict() for record in records])
