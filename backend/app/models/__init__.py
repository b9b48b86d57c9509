from .auth import User, SessionToken
from .customers import Customer
from .inventory import InventoryItem
from .orders import TruckDelivery, Order, OrderItem, OrderInstallment
from .payments import Payment
from .activity import ActivityLog

__all__ = [
    'User', 'SessionToken',
    'Customer',
    'InventoryItem',
    'TruckDelivery', 'Order', 'OrderItem', 'OrderInstallment',
    'Payment',
    'ActivityLog',
]
