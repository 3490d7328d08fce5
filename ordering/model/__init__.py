# ------ ordering/model/__init__.py ------

from .user import User
from .product import Product, Ingredient
from .promotion import Promotion
from .delivery import DeliveryConfig
from .order import Order, OrderItem
from .loyalty import LedgerEntry

__all__ = [
    "User",
    "Product",
    "Ingredient",
    "Promotion",
    "DeliveryConfig",
    "Order",
    "OrderItem",
    "LedgerEntry",
]
