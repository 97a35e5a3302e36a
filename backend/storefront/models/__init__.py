from .auth import User, ROLES, ROLE_USER, ROLE_ADMIN
from .catalog import Category, Product, PRODUCT_STATUSES
from .orders import Order, OrderItem, OrderSequence, ORDER_STATUSES, PAYMENT_STATUSES
from .reviews import Review, ReviewVote

__all__ = [
    'User', 'ROLES', 'ROLE_USER', 'ROLE_ADMIN',
    'Category', 'Product', 'PRODUCT_STATUSES',
    'Order', 'OrderItem', 'OrderSequence', 'ORDER_STATUSES', 'PAYMENT_STATUSES',
    'Review', 'ReviewVote',
]
