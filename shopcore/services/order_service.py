import random
import time
from typing import Dict, Optional
from uuid import uuid4
from decimal import Decimal
from sqlalchemy import or_, update
from sqlalchemy.orm import Session
from ..db.session import get_session
from ..models.order import Order
from ..models.product import Product, ProductSize
from ..utils.dto import to_order_dto
from ..utils.pagination import normalize_paging, page_meta
from ..utils.validators import normalize_address
from .cart_service import load_cart, validate_cart
from .catalog_service import find_product
from .errors import (
    AlreadyCancelled,
    CartEmpty,
    CartInvalid,
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    OrderNumberUnavailable,
    ProductUnavailable,
    ValidationFailed,
)
from .logging import log_event
from . import order_states

ORDER_NUMBER_PREFIX = "PN-"
CENT = Decimal("0.01")


def generate_order_number() -> str:
    """Timestamp tail plus a random suffix, e.g. ``PN-482913057``.

    Unique in practice only: two numbers collide if they share the same
    millisecond tail and the same 3-digit suffix. Callers check before insert.
    """
    timestamp = str(int(time.time() * 1000))
    return f"{ORDER_NUMBER_PREFIX}{timestamp[-6:]}{random.randint(0, 999):03d}"


def _unique_order_number(session: Session, attempts: int = 5) -> str:
    for _ in range(attempts):
        number = generate_order_number()
        if not session.query(Order.id).filter(Order.order_number == number).first():
            return number
    raise OrderNumberUnavailable()


def decrement_stock(session: Session, product: Product, size: str, quantity: int) -> None:
    """Take ``quantity`` units in one conditional UPDATE; never lets stock go below zero."""
    if product.has_sizes:
        stmt = (
            update(ProductSize)
            .where(
                ProductSize.product_id == product.id,
                ProductSize.size == size,
                ProductSize.stock_quantity >= quantity,
            )
            .values(stock_quantity=ProductSize.stock_quantity - quantity)
        )
    else:
        stmt = (
            update(Product)
            .where(Product.id == product.id, Product.stock_quantity >= quantity)
            .values(stock_quantity=Product.stock_quantity - quantity)
        )
    result = session.execute(stmt.execution_options(synchronize_session=False))
    if not result.rowcount:
        raise InsufficientStock(f"{product.name} sold out in size {size} while checking out")


def apply_order_status(order: Order, new_status: str) -> None:
    order.status = order_states.transition_order(order.status, new_status)


def apply_payment_status(order: Order, new_status: str) -> None:
    order.payment_status = order_states.transition_payment(order.payment_status, new_status)


class OrderService:
    """Order creation, status changes and retrieval backed by DB."""

    def __init__(self, session_factory=get_session, *, currency: str = "INR", on_stock_change=None):
        self._session_factory = session_factory
        self._currency = currency
        self._on_stock_change = on_stock_change

    def create_from_cart(self, *, user_id: str, addresses: Dict, notes: Optional[str] = None) -> Dict:
        """Convert the user's cart into an order and take the stock.

        Validation, order insert and every stock decrement share one
        transaction: any failure leaves neither an order nor a partial
        decrement behind. The cart itself is left untouched.
        """
        addresses = addresses or {}
        shipping = normalize_address(addresses.get("shipping"), "shipping")
        billing = normalize_address(addresses.get("billing") or addresses.get("shipping"), "billing")

        with self._session_factory() as session:
            cart = load_cart(session, user_id, create=False)
            if cart is None or not cart.items:
                raise CartEmpty()

            validation = validate_cart(session, cart)
            if not validation["valid"]:
                raise CartInvalid(validation["errors"])

            lines = []
            products = []
            total = Decimal("0")
            for item in cart.items:
                product = find_product(session, item.product_id)
                if product is None or not product.is_active:
                    name = product.name if product else "Unknown"
                    raise ProductUnavailable(f"Product {name} is no longer available")
                price = Decimal(str(item.price_at_time))
                total += price * item.quantity
                products.append(product)
                lines.append(
                    {
                        "product_id": product.id,
                        "name": product.name,
                        "quantity": item.quantity,
                        "price": float(price),
                        "size": item.size,
                    }
                )

            total = total.quantize(CENT)
            shipping_amount = Decimal("0")
            discount_amount = Decimal("0")
            order = Order(
                id=str(uuid4()),
                order_number=_unique_order_number(session),
                user_id=user_id,
                items=lines,
                total_amount=total,
                shipping_amount=shipping_amount,
                discount_amount=discount_amount,
                final_amount=total + shipping_amount - discount_amount,
                currency=self._currency,
                status=order_states.PENDING,
                payment_status=order_states.PAYMENT_PENDING,
                shipping_address=shipping,
                billing_address=billing,
                notes=(notes or "").strip() or None,
            )
            session.add(order)
            session.flush()

            for product, line in zip(products, lines):
                decrement_stock(session, product, line["size"], line["quantity"])
            session.flush()
            log_event(
                "info",
                "order.created",
                order_id=order.id,
                order_number=order.order_number,
                user_id=user_id,
                items=len(lines),
                final_amount=order.final_amount,
            )
            result = to_order_dto(order)
        if self._on_stock_change:
            self._on_stock_change()
        return result

    def _get(self, session: Session, order_id: str, user_id: Optional[str] = None) -> Order:
        order = session.get(Order, order_id) if order_id else None
        if order is None or (user_id is not None and order.user_id != user_id):
            raise OrderNotFound()
        return order

    def get_order(self, order_id: str, *, user_id: Optional[str] = None) -> Dict:
        with self._session_factory() as session:
            return to_order_dto(self._get(session, order_id, user_id))

    def list_orders(self, *, user_id: str, status: Optional[str] = None, page: int = 1, page_size: int = 10) -> Dict:
        p, ps = normalize_paging(page, page_size)
        with self._session_factory() as session:
            q = session.query(Order).filter(Order.user_id == user_id)
            if status:
                q = q.filter(Order.status == status)
            total = q.count()
            rows = q.order_by(Order.created_at.desc()).offset((p - 1) * ps).limit(ps).all()
            return {"orders": [to_order_dto(r) for r in rows], "pagination": page_meta(p, ps, total)}

    def list_all_orders(
        self,
        *,
        status: Optional[str] = None,
        payment_status: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict:
        p, ps = normalize_paging(page, page_size)
        with self._session_factory() as session:
            q = session.query(Order)
            if status:
                q = q.filter(Order.status == status)
            if payment_status:
                q = q.filter(Order.payment_status == payment_status)
            if search:
                like = f"%{search}%"
                q = q.filter(or_(Order.order_number.ilike(like), Order.user_id.ilike(like)))
            total = q.count()
            rows = q.order_by(Order.created_at.desc()).offset((p - 1) * ps).limit(ps).all()
            return {"orders": [to_order_dto(r) for r in rows], "pagination": page_meta(p, ps, total)}

    def update_status(self, order_id: str, new_status: str, *, tracking_number: Optional[str] = None) -> Dict:
        with self._session_factory() as session:
            order = self._get(session, order_id)
            previous = order.status
            apply_order_status(order, new_status)
            if tracking_number:
                order.tracking_number = tracking_number.strip()
            session.flush()
            log_event("info", "order.status_changed", order_id=order.id, previous=previous, status=order.status)
            return to_order_dto(order)

    def set_tracking(self, order_id: str, tracking_number: str) -> Dict:
        number = (tracking_number or "").strip()
        if not number:
            raise ValidationFailed("tracking_number is required")
        with self._session_factory() as session:
            order = self._get(session, order_id)
            order.tracking_number = number
            session.flush()
            log_event("info", "order.tracking_set", order_id=order.id, tracking_number=number)
            return to_order_dto(order)

    def cancel(self, order_id: str, *, user_id: Optional[str] = None) -> Dict:
        with self._session_factory() as session:
            order = self._get(session, order_id, user_id)
            if order.status == order_states.CANCELLED:
                raise AlreadyCancelled()
            if order.status == order_states.DELIVERED:
                raise InvalidTransition(order.status, order_states.CANCELLED, "Cannot cancel delivered order")
            if order.status == order_states.SHIPPED:
                raise InvalidTransition(
                    order.status,
                    order_states.CANCELLED,
                    "Cannot cancel shipped order. Please contact support.",
                )
            apply_order_status(order, order_states.CANCELLED)
            session.flush()
            log_event("info", "order.cancelled", order_id=order.id, user_id=order.user_id)
            return to_order_dto(order)

    def update_payment_status(self, order_id: str, new_status: str) -> Dict:
        with self._session_factory() as session:
            order = self._get(session, order_id)
            previous = order.payment_status
            apply_payment_status(order, new_status)
            session.flush()
            log_event("info", "order.payment_status_changed", order_id=order.id, previous=previous, status=order.payment_status)
            return to_order_dto(order)
