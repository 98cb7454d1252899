from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import QUANTITY


class WasteRecord(db.Model):
    """Append-only record of stock moved from remaining to wasted on one batch."""
    __tablename__ = 'waste_record'

    id = db.Column(db.Integer, primary_key=True)
    stock_batch_id = db.Column(
        db.Integer, db.ForeignKey('stock_batch.id', ondelete='CASCADE'), nullable=False, index=True
    )
    quantity = db.Column(QUANTITY, nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    reason = db.Column(db.String(255), nullable=False)
    recorded_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    stock_batch = db.relationship('StockBatch', back_populates='waste_records')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='check_waste_quantity_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'stock_batch_id': self.stock_batch_id,
            'quantity': self.quantity,
            'unit': self.unit,
            'reason': self.reason,
            'recorded_at': TimezoneUtils.format_datetime_for_api(self.recorded_at),
        }
