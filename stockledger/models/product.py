from ..extensions import db
from ..utils.timezone_utils import TimezoneUtils
from .mixins import COST, MONEY, PERCENT, QUANTITY, OwnerScopedMixin


class ProductStatus:
    PROFITABLE = 'profitable'
    BREAKING_EVEN = 'breaking_even'
    LOSING_MONEY = 'losing_money'

    ALL = (PROFITABLE, BREAKING_EVEN, LOSING_MONEY)


class Product(OwnerScopedMixin, db.Model):
    """
    A sellable item with a recipe.

    total_cost, margin_amount, margin_percent and status are written only by
    the product costing service; there is no public setter for them.
    """
    __tablename__ = 'product'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(128), nullable=False)
    category = db.Column(db.String(64), nullable=True)
    sell_price = db.Column(MONEY, nullable=False)

    total_cost = db.Column(COST, nullable=False, default=0)
    margin_amount = db.Column(COST, nullable=False, default=0)
    margin_percent = db.Column(PERCENT, nullable=False, default=0)
    status = db.Column(db.String(32), nullable=False, default=ProductStatus.BREAKING_EVEN)

    quantity_sold = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=TimezoneUtils.utc_now, nullable=False)

    recipe_lines = db.relationship(
        'ProductRecipeLine',
        back_populates='product',
        cascade='all, delete-orphan',
        order_by='ProductRecipeLine.id',
    )

    __table_args__ = (
        db.CheckConstraint('sell_price >= 0', name='check_product_sell_price_non_negative'),
        db.CheckConstraint(
            "status IN ('profitable', 'breaking_even', 'losing_money')", name='check_product_status_values'
        ),
    )

    def to_dict(self, include_recipe=True):
        data = {
            'id': self.id,
            'owner_id': self.owner_id,
            'name': self.name,
            'category': self.category,
            'sell_price': self.sell_price,
            'total_cost': self.total_cost,
            'margin_amount': self.margin_amount,
            'margin_percent': self.margin_percent,
            'status': self.status,
            'quantity_sold': self.quantity_sold,
        }
        if include_recipe:
            data['recipe'] = [line.to_dict() for line in self.recipe_lines]
        return data

    def __repr__(self):
        return f'<Product {self.id}: {self.name} ({self.status})>'


class ProductRecipeLine(db.Model):
    __tablename__ = 'product_recipe_line'

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(
        db.Integer, db.ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True
    )
    ingredient_id = db.Column(db.Integer, db.ForeignKey('ingredient.id'), nullable=False, index=True)
    quantity = db.Column(QUANTITY, nullable=False)
    unit = db.Column(db.String(16), nullable=False)
    is_optional = db.Column(db.Boolean, nullable=False, default=False)

    # True cost per base unit of the requested unit, cached with the line cost
    cost_per_unit = db.Column(COST, nullable=False, default=0)
    line_cost = db.Column(COST, nullable=False, default=0)

    product = db.relationship('Product', back_populates='recipe_lines')
    ingredient = db.relationship('Ingredient')

    __table_args__ = (
        db.CheckConstraint('quantity > 0', name='check_recipe_line_quantity_positive'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'ingredient_id': self.ingredient_id,
            'ingredient_name': self.ingredient.name if self.ingredient else None,
            'quantity': self.quantity,
            'unit': self.unit,
            'is_optional': self.is_optional,
            'cost_per_unit': self.cost_per_unit,
            'line_cost': self.line_cost,
        }
