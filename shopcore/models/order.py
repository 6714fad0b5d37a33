from sqlalchemy import Column, DateTime, JSON, Numeric, String, Text, func
from .base import Base


class Order(Base):
    __tablename__ = "order"

    id = Column(String(36), primary_key=True)
    order_number = Column(String(32), nullable=False, unique=True)
    user_id = Column(String(128), nullable=False, index=True)
    items = Column(JSON, nullable=False)
    total_amount = Column(Numeric(12, 2), nullable=False)
    shipping_amount = Column(Numeric(12, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    final_amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(32), nullable=False, default="pending", index=True)
    payment_status = Column(String(32), nullable=False, default="pending", index=True)
    shipping_address = Column(JSON, nullable=False)
    billing_address = Column(JSON, nullable=False)
    notes = Column(Text, nullable=True)
    tracking_number = Column(String(128), nullable=True)
    payment_id = Column(String(36), nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now(), index=True)
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    @property
    def total_items(self) -> int:
        return sum(int(it.get("quantity") or 0) for it in (self.items or []))
