"""
商品與尺寸規格模型
有尺寸規格時，價格與庫存一律依尺寸查詢；否則使用商品本身的價格與庫存
"""
from typing import Optional

from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, Numeric, String, Text, UniqueConstraint, func
from sqlalchemy.orm import relationship
from .base import Base


class Product(Base):
    __tablename__ = "product"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    slug = Column(String(255), nullable=True, unique=True)
    description = Column(Text, nullable=True)
    category_id = Column(String(36), ForeignKey("category.id"), nullable=True)
    base_price = Column(Numeric(12, 2), nullable=True)
    stock_quantity = Column(Integer, nullable=False, default=0)
    images = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)
    average_rating = Column(Float, nullable=False, default=0)
    total_reviews = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    sizes = relationship(
        "ProductSize",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductSize.price",
        lazy="selectin",
    )

    @property
    def has_sizes(self) -> bool:
        return bool(self.sizes)

    def find_size(self, size: Optional[str]) -> Optional["ProductSize"]:
        for entry in self.sizes:
            if entry.size == size:
                return entry
        return None

    def price_for_size(self, size: Optional[str]):
        entry = self.find_size(size) if self.has_sizes else None
        if entry is not None:
            return entry.price
        return self.base_price or 0

    def stock_for_size(self, size: Optional[str]) -> int:
        entry = self.find_size(size) if self.has_sizes else None
        if entry is not None:
            return int(entry.stock_quantity or 0)
        return int(self.stock_quantity or 0)

    @property
    def display_price(self):
        """最低尺寸價格，無尺寸時為基本價格"""
        if self.has_sizes:
            return min(entry.price for entry in self.sizes)
        return self.base_price or 0


class ProductSize(Base):
    """商品尺寸規格（例如：250ml、500ml），各自有價格與庫存"""
    __tablename__ = "product_size"
    __table_args__ = (UniqueConstraint("product_id", "size", name="uq_product_size"),)

    id = Column(String(36), primary_key=True)
    product_id = Column(String(36), ForeignKey("product.id", ondelete="CASCADE"), nullable=False)
    size = Column(String(64), nullable=False)
    price = Column(Numeric(12, 2), nullable=False)
    stock_quantity = Column(Integer, nullable=False, default=0)

    product = relationship("Product", back_populates="sizes")

    def to_dict(self):
        return {
            "size": self.size,
            "price": float(self.price or 0),
            "stock_quantity": int(self.stock_quantity or 0),
        }
