from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils

# Fixed-point column types shared by the ledger tables
QUANTITY = db.Numeric(18, 6)
COST = db.Numeric(14, 4)
MONEY = db.Numeric(12, 2)
PERCENT = db.Numeric(10, 2)


class TimestampMixin:
    """Adds created_at and updated_at timestamps to models"""
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)
    updated_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, onupdate=TimezoneUtils.utc_now, nullable=False)


class OwnerScopedMixin:
    owner_id = db.Column(db.Integer, nullable=True, index=True)

    @classmethod
    def for_owner(cls, owner_id):
        return cls.query.filter_by(owner_id=owner_id)
