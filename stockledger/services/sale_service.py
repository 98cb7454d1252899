import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func

from ..models import Product, Sale, SaleAllocation, db
from .errors import InvalidInputError, NotFoundError
from .product_costing import recipe_requirements
from .stock_ledger import allocate_and_deduct, credit_allocations, retry_on_conflict, unit_of_work
from .unit_conversion import round_money, to_decimal

logger = logging.getLogger(__name__)


def _validate_quantity(quantity) -> int:
    if isinstance(quantity, bool):
        raise InvalidInputError("Quantity must be a positive whole number", field='quantity')
    try:
        value = int(quantity)
    except (TypeError, ValueError):
        raise InvalidInputError("Quantity must be a positive whole number", field='quantity')
    if value <= 0 or value != to_decimal(quantity):
        raise InvalidInputError("Quantity must be a positive whole number", field='quantity')
    return value


@retry_on_conflict
def record_sale(product_id=None, quantity=1, product_name=None, total_amount=None, sold_at=None) -> Sale:
    """
    Record a sale and deduct every recipe ingredient x quantity from stock.

    Deduction and the sale row share one unit of work: if any ingredient is
    short, nothing is deducted and no sale is written. A sale of a product
    the catalogue does not know is recorded by name without touching stock.
    """
    units = _validate_quantity(quantity)

    with unit_of_work():
        product: Optional[Product] = None
        allocations = []

        if product_id is not None:
            product = db.session.get(Product, product_id)
            if not product:
                raise NotFoundError('Product', product_id)
            requirements = recipe_requirements(product, units)
            if requirements:
                allocations = allocate_and_deduct(requirements)
        elif not (isinstance(product_name, str) and product_name.strip()):
            raise InvalidInputError("Product ID or product name is required", field='product_id')

        if total_amount is not None:
            amount = round_money(total_amount)
            if amount < 0:
                raise InvalidInputError("Total amount cannot be negative", field='total_amount')
        elif product is not None:
            amount = round_money(Decimal(product.sell_price) * units)
        else:
            amount = Decimal('0.00')

        sale = Sale(
            product_id=product.id if product else None,
            product_name=product.name if product else product_name.strip(),
            quantity=units,
            total_amount=amount,
        )
        if sold_at is not None:
            sale.sold_at = sold_at
        sale.allocations = [
            SaleAllocation(stock_batch_id=a.stock_batch_id, quantity=a.quantity, unit=a.unit)
            for a in allocations
        ]
        db.session.add(sale)

        if product is not None:
            product.quantity_sold = func.coalesce(Product.quantity_sold, 0) + units
        db.session.flush()

        logger.info(
            f"SALE: Recorded sale {sale.id} of {units} x {sale.product_name} "
            f"({len(allocations)} batch allocation(s))"
        )

    return sale


@retry_on_conflict
def delete_sale(sale_id) -> None:
    """Delete a sale and re-credit exactly the stock its allocations took."""
    with unit_of_work():
        sale = db.session.get(Sale, sale_id)
        if not sale:
            raise NotFoundError('Sale', sale_id)

        credit_allocations(sale.allocations)
        if sale.product_id is not None:
            product = db.session.get(Product, sale.product_id)
            if product:
                product.quantity_sold = max((product.quantity_sold or 0) - sale.quantity, 0)

        db.session.delete(sale)
        db.session.flush()
        logger.info(f"SALE: Deleted sale {sale_id} and re-credited {len(sale.allocations)} allocation(s)")


def list_sales(product_id=None) -> List[Sale]:
    query = Sale.query
    if product_id is not None:
        query = query.filter(Sale.product_id == product_id)
    return query.order_by(Sale.sold_at.asc(), Sale.id.asc()).all()
