from sqlalchemy import Column, DateTime, ForeignKey, Index, JSON, Numeric, String, func, text
from .base import Base


class Payment(Base):
    __tablename__ = "payment"
    __table_args__ = (
        # at most one pending payment per order
        Index(
            "uq_payment_pending_order",
            "order_id",
            unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )

    id = Column(String(36), primary_key=True)
    order_id = Column(String(36), ForeignKey("order.id"), nullable=False, index=True)
    gateway_order_id = Column(String(64), nullable=False, index=True)
    gateway_payment_id = Column(String(64), nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    currency = Column(String(3), nullable=False)
    status = Column(String(32), nullable=False, default="pending")
    payment_method = Column(String(64), nullable=True)
    transaction_details = Column(JSON, nullable=True)
    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now(), onupdate=func.now())

    def merge_details(self, **fields) -> None:
        # reassign so the JSON column is flagged dirty
        details = dict(self.transaction_details or {})
        details.update(fields)
        self.transaction_details = details
