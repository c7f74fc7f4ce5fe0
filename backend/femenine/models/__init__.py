from .auth import User, SessionToken
from .catalog import Brand, Category, Supplier
from .inventory import Product, StockMovement, Purchase, PurchaseItem
from .sales import Sale, SaleItem
from .activity import ActivityAction, ActivityLog
from .settings import SystemConfig

__all__ = [
    'User', 'SessionToken',
    'Brand', 'Category', 'Supplier',
    'Product', 'StockMovement', 'Purchase', 'PurchaseItem',
    'Sale', 'SaleItem',
    'ActivityAction', 'ActivityLog',
    'SystemConfig',
]
