from decimal import Decimal

from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import COST, MONEY, PERCENT, QUANTITY


class StockBatch(db.Model):
    """
    One purchase lot of an ingredient, possibly topped up by later purchases.

    Quantities are held in the batch's own unit. usable_quantity is the
    waste-adjusted amount ever added to the batch; remaining and wasted can
    never exceed it and never go negative.
    """
    __tablename__ = 'stock_batch'

    id = db.Column(db.Integer, primary_key=True)
    ingredient_id = db.Column(
        db.Integer, db.ForeignKey('ingredient.id', ondelete='CASCADE'), nullable=False, index=True
    )

    purchased_quantity = db.Column(QUANTITY, nullable=False)
    usable_quantity = db.Column(QUANTITY, nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    total_purchased_price = db.Column(MONEY, nullable=False, default=0)
    purchase_price_per_unit = db.Column(COST, nullable=False, default=0)
    waste_percent = db.Column(PERCENT, nullable=False, default=0)
    remaining_quantity = db.Column(QUANTITY, nullable=False)
    wasted_quantity = db.Column(QUANTITY, nullable=False, default=0)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    purchased_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now, nullable=False)

    ingredient = db.relationship('Ingredient', back_populates='batches')
    waste_records = db.relationship(
        'WasteRecord', back_populates='stock_batch', cascade='all, delete-orphan'
    )

    __table_args__ = (
        db.CheckConstraint('remaining_quantity >= 0', name='check_batch_remaining_non_negative'),
        db.CheckConstraint('wasted_quantity >= 0', name='check_batch_wasted_non_negative'),
        db.CheckConstraint('purchased_quantity > 0', name='check_batch_purchased_positive'),
        db.CheckConstraint(
            'ROUND(remaining_quantity + wasted_quantity, 6) <= usable_quantity',
            name='check_batch_within_usable',
        ),
        db.Index('ix_stock_batch_fifo', 'ingredient_id', 'purchased_at', 'id'),
    )

    # Every UPDATE matches on the version read; a concurrent writer raises StaleDataError
    __mapper_args__ = {'version_id_col': version_id}

    @property
    def consumed_quantity(self) -> Decimal:
        """Usable stock that has left the batch through sales."""
        return (
            Decimal(self.usable_quantity or 0)
            - Decimal(self.remaining_quantity or 0)
            - Decimal(self.wasted_quantity or 0)
        )

    @property
    def is_depleted(self):
        return (self.remaining_quantity or 0) <= 0

    def to_dict(self):
        return {
            'id': self.id,
            'ingredient_id': self.ingredient_id,
            'purchased_quantity': self.purchased_quantity,
            'usable_quantity': self.usable_quantity,
            'unit': self.unit,
            'total_purchased_price': self.total_purchased_price,
            'purchase_price_per_unit': self.purchase_price_per_unit,
            'waste_percent': self.waste_percent,
            'remaining_quantity': self.remaining_quantity,
            'wasted_quantity': self.wasted_quantity,
            'consumed_quantity': self.consumed_quantity,
            'purchased_at': TimezoneUtils.format_datetime_for_api(self.purchased_at),
        }

    def __repr__(self):
        return f'<StockBatch {self.id}: {self.remaining_quantity}/{self.usable_quantity} {self.unit}>'
