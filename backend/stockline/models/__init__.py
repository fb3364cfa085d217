from .auth import User, USER_ROLE_ADMIN, USER_ROLE_OPERATOR
from .catalog import Warehouse, Client, InventoryItem
from .ledger import Movement, MovementType
from .orders import Order, OrderLine, OrderSequence, OrderStatus

__all__ = [
    'User', 'USER_ROLE_ADMIN', 'USER_ROLE_OPERATOR',
    'Warehouse', 'Client', 'InventoryItem',
    'Movement', 'MovementType',
    'Order', 'OrderLine', 'OrderSequence', 'OrderStatus',
]
