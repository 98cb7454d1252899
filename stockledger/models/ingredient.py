from ..extensions import db
from .mixins import COST, MONEY, PERCENT, QUANTITY, OwnerScopedMixin, TimestampMixin


class Ingredient(OwnerScopedMixin, TimestampMixin, db.Model):
    """
    A raw material bought in batches and consumed by product recipes.

    Exactly one of cost_per_ml / cost_per_gram / cost_per_unit is populated,
    chosen by the unit family; the other two stay NULL ("not applicable").
    """
    __tablename__ = 'ingredient'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    quantity = db.Column(QUANTITY, nullable=False)
    purchase_price = db.Column(MONEY, nullable=False, default=0)
    waste_percent = db.Column(PERCENT, nullable=False, default=0)
    supplier = db.Column(db.String(128), nullable=True)

    cost_per_ml = db.Column(COST, nullable=True)
    cost_per_gram = db.Column(COST, nullable=True)
    cost_per_unit = db.Column(COST, nullable=True)

    batches = db.relationship(
        'StockBatch',
        back_populates='ingredient',
        cascade='all, delete-orphan',
    )
    purchases = db.relationship(
        'Purchase',
        back_populates='ingredient',
        cascade='all, delete-orphan',
    )

    __table_args__ = (
        db.UniqueConstraint('owner_id', 'name', name='uq_ingredient_owner_name'),
        db.CheckConstraint('waste_percent >= 0 AND waste_percent <= 100', name='check_ingredient_waste_percent_range'),
        db.CheckConstraint('quantity > 0', name='check_ingredient_quantity_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'name': self.name,
            'unit': self.unit,
            'quantity': self.quantity,
            'purchase_price': self.purchase_price,
            'waste_percent': self.waste_percent,
            'supplier': self.supplier,
            'cost_per_ml': self.cost_per_ml,
            'cost_per_gram': self.cost_per_gram,
            'cost_per_unit': self.cost_per_unit,
        }

    def __repr__(self):
        return f'<Ingredient {self.id}: {self.name} ({self.unit})>'
