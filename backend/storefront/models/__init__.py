from .catalog import Category, Product, ProductImage, ProductVariant
from .inventory import StockMovement, ProductHistory

__all__ = [
    'Category', 'Product', 'ProductImage', 'ProductVariant',
    'StockMovement', 'ProductHistory',
]
