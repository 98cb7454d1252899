from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import COST, MONEY, QUANTITY


class Purchase(db.Model):
    """Immutable log of a purchase event and the batch it landed in."""
    __tablename__ = 'purchase'

    id = db.Column(db.Integer, primary_key=True)
    ingredient_id = db.Column(
        db.Integer, db.ForeignKey('ingredient.id', ondelete='CASCADE'), nullable=False, index=True
    )
    stock_batch_id = db.Column(
        db.Integer, db.ForeignKey('stock_batch.id', ondelete='CASCADE'), nullable=False, index=True
    )
    quantity = db.Column(QUANTITY, nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    purchase_price = db.Column(COST, nullable=False)
    total_cost = db.Column(MONEY, nullable=False)
    purchased_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    ingredient = db.relationship('Ingredient', back_populates='purchases')
    stock_batch = db.relationship('StockBatch')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='check_purchase_quantity_positive'),
        db.CheckConstraint('purchase_price >= 0', name='check_purchase_price_non_negative'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'ingredient_id': self.ingredient_id,
            'stock_batch_id': self.stock_batch_id,
            'quantity': self.quantity,
            'unit': self.unit,
            'purchase_price': self.purchase_price,
            'total_cost': self.total_cost,
            'purchased_at': TimezoneUtils.format_datetime_for_api(self.purchased_at),
        }
