"""Models package - imports all models for the application"""
from ..extensions import db

# Import in dependency order for table creation
from .ingredient import Ingredient
from .stock_batch import StockBatch
from .purchase import Purchase
from .waste_record import WasteRecord
from .product import Product, ProductRecipeLine, ProductStatus
from .sale import Sale, SaleAllocation

__all__ = [
    'db',
    'Ingredient',
    'StockBatch',
    'Purchase',
    'WasteRecord',
    'Product',
    'ProductRecipeLine',
    'ProductStatus',
    'Sale',
    'SaleAllocation',
]
