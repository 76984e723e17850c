from .users import User
from .catalog import Category, Product
from .inventory import Inventory, InventoryMovement
from .customers import Customer
from .sales import Sale, SaleItem

__all__ = [
    'User',
    'Category', 'Product',
    'Inventory', 'InventoryMovement',
    'Customer',
    'Sale', 'SaleItem',
]
