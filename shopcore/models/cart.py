from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String, func
from sqlalchemy.orm import relationship
from .base import Base


class Cart(Base):
    __tablename__ = "cart"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(128), nullable=False, unique=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.added_at",
        lazy="selectin",
    )


class CartItem(Base):
    """Cart line addressed by (cart_id, product_id, size)."""
    __tablename__ = "cart_item"

    cart_id = Column(String(36), ForeignKey("cart.id", ondelete="CASCADE"), primary_key=True)
    product_id = Column(String(36), ForeignKey("product.id"), primary_key=True)
    size = Column(String(64), primary_key=True)
    quantity = Column(Integer, nullable=False)
    price_at_time = Column(Numeric(12, 2), nullable=False)
    added_at = Column(DateTime, nullable=False, default=datetime.utcnow)

    cart = relationship("Cart", back_populates="items")
