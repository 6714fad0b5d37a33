from .base import Base
from .cart import Cart, CartItem
from .category import Category
from .order import Order
from .payment import Payment
from .product import Product, ProductSize
from .review import Review

__all__ = [
    "Base",
    "Cart",
    "CartItem",
    "Category",
    "Order",
    "Payment",
    "Product",
    "ProductSize",
    "Review",
]
