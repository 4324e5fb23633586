from .auth import User, SessionToken
from .catalog import Supplier, InventoryItem
from .sales import Sale, SaleItem

__all__ = [
    'User', 'SessionToken',
    'Supplier', 'InventoryItem',
    'Sale', 'SaleItem',
]
