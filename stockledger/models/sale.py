from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import MONEY, QUANTITY


class Sale(db.Model):
    """
    A recorded sale. Stock is deducted when the sale is created; the
    allocations it consumed are kept so the sale can be reversed exactly.
    """
    __tablename__ = 'sale'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer, db.ForeignKey('product.id', ondelete='SET NULL'), nullable=True, index=True
    )
    # Free text for products the catalogue does not recognise
    product_name = db.Column(db.String(128), nullable=True)
    quantity = db.Column(db.Integer, nullable=False)
    total_amount = db.Column(MONEY, nullable=False, default=0)
    sold_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    product = db.relationship('Product')
    allocations = db.relationship(
        'SaleAllocation',
        back_populates='sale',
        cascade='all, delete-orphan',
        order_by='SaleAllocation.id',
    )

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='check_sale_quantity_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'product_id': self.product_id,
            'product_name': self.product_name,
            'quantity': self.quantity,
            'total_amount': self.total_amount,
            'sold_at': TimezoneUtils.format_datetime_for_api(self.sold_at),
            'allocations': [allocation.to_dict() for allocation in self.allocations],
        }


class SaleAllocation(db.Model):
    """Quantity a sale took from one stock batch, in the batch's unit."""
    __tablename__ = 'sale_allocation'

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey('sale.id', ondelete='CASCADE'), nullable=False, index=True)
    stock_batch_id = db.Column(
        db.Integer, db.ForeignKey('stock_batch.id', ondelete='CASCADE'), nullable=False, index=True
    )
    quantity = db.Column(QUANTITY, nullable=False)
    unit = db.Column(db.String(16), nullable=False)

    sale = db.relationship('Sale', back_populates='allocations')
    stock_batch = db.relationship('StockBatch')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='check_sale_allocation_quantity_positive'),
    )

    def to_dict(self):
        return {
            'stock_batch_id': self.stock_batch_id,
            'quantity': self.quantity,
            'unit': self.unit,
        }
