from typing import Dict, Optional, Tuple
from uuid import uuid4
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import delete, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ..db.session import get_session
from ..models.cart import Cart, CartItem
from ..models.product import Product
from ..utils.dto import to_cart_line_dto
from ..utils.validators import ensure_positive_int
from .catalog_service import find_product
from .errors import InsufficientStock, InvalidSize, LineNotFound, ProductUnavailable
from .logging import log_event

CENT = Decimal("0.01")


def _round_money(value: Decimal) -> float:
    return float(Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP))


def line_size(product: Optional[Product], size: Optional[str]) -> str:
    """Size part of the line key; products without size variants share one stock pool under ``""``."""
    if product is not None and not product.has_sizes:
        return ""
    return size or ""


def resolve_size(product: Product, size: str) -> Tuple[Decimal, int]:
    """Price and stock for ``size``; flat fields when the product has no size variants."""
    if product.has_sizes and product.find_size(size) is None:
        raise InvalidSize()
    return Decimal(str(product.price_for_size(size))), product.stock_for_size(size)


def load_cart(session: Session, user_id: str, *, create: bool = True) -> Optional[Cart]:
    cart = session.query(Cart).filter(Cart.user_id == user_id).first()
    if cart or not create:
        return cart
    cart = Cart(id=str(uuid4()), user_id=user_id)
    session.add(cart)
    try:
        session.flush()
    except IntegrityError:
        # another request created it first
        session.rollback()
        cart = session.query(Cart).filter(Cart.user_id == user_id).one()
    return cart


def clear_cart_lines(session: Session, user_id: str) -> int:
    cart = load_cart(session, user_id, create=False)
    if cart is None:
        return 0
    result = session.execute(delete(CartItem).where(CartItem.cart_id == cart.id))
    session.expire(cart, ["items"])
    return result.rowcount or 0


def validate_cart(session: Session, cart: Cart) -> Dict:
    """Re-check every line against current product state; never mutates anything."""
    results = {
        "valid": True,
        "errors": [],
        "summary": {"total_items": 0, "total_amount": 0.0},
    }
    total = Decimal("0")
    taken: Dict[Tuple[str, str], int] = {}
    for line in cart.items:
        product = find_product(session, line.product_id)
        if product is None:
            results["errors"].append(f"Product not found for cart item {line.product_id}")
            continue
        if not product.is_active:
            results["errors"].append(f"{product.name} is no longer available")
            continue
        if product.has_sizes and product.find_size(line.size) is None:
            results["errors"].append(f"{product.name} is no longer available in size {line.size}")
            continue
        stock = product.stock_for_size(line.size)
        pool = (product.id, line_size(product, line.size))
        if stock < taken.get(pool, 0) + line.quantity:
            results["errors"].append(f"Only {stock} {product.name} available in stock for size {line.size}")
            continue
        taken[pool] = taken.get(pool, 0) + line.quantity
        results["summary"]["total_items"] += line.quantity
        total += Decimal(str(line.price_at_time)) * line.quantity
    results["valid"] = not results["errors"]
    results["summary"]["total_amount"] = _round_money(total)
    return results


def summarize(cart: Cart) -> Dict:
    total = sum((Decimal(str(it.price_at_time)) * it.quantity for it in cart.items), Decimal("0"))
    return {
        "total_items": sum(it.quantity for it in cart.items),
        "total_amount": _round_money(total),
    }


class CartService:
    """Per-user cart backed by DB. Every mutation commits before returning."""

    def __init__(self, session_factory=get_session):
        self._session_factory = session_factory

    def get_cart(self, *, user_id: str) -> Dict:
        with self._session_factory() as session:
            cart = load_cart(session, user_id)
            items = []
            for it in cart.items:
                line = to_cart_line_dto(it)
                product = find_product(session, it.product_id)
                line["name"] = product.name if product else None
                line["available"] = bool(product and product.is_active)
                line["stock_quantity"] = product.stock_for_size(it.size) if product else 0
                items.append(line)
            return {"cart_id": cart.id, "items": items, "summary": summarize(cart)}

    def add_item(self, *, user_id: str, product_id: str, quantity: int, size: Optional[str] = None) -> Dict:
        qnty = ensure_positive_int(quantity, "quantity")
        with self._session_factory() as session:
            product = find_product(session, product_id)
            if product is None or not product.is_active:
                raise ProductUnavailable()
            size = line_size(product, size)
            price, stock = resolve_size(product, size)
            if stock < qnty:
                raise InsufficientStock(f"Only {stock} items available in stock for size {size}")

            for _attempt in range(2):
                cart = load_cart(session, user_id)
                key = (cart.id, product_id, size)
                existing = session.get(CartItem, key)
                if existing is not None:
                    # merge only if the combined quantity still fits the stock
                    result = session.execute(
                        update(CartItem)
                        .where(
                            CartItem.cart_id == cart.id,
                            CartItem.product_id == product_id,
                            CartItem.size == size,
                            CartItem.quantity + qnty <= stock,
                        )
                        .values(quantity=CartItem.quantity + qnty, price_at_time=price)
                        .execution_options(synchronize_session=False)
                    )
                    session.refresh(existing)
                    if not result.rowcount:
                        raise InsufficientStock(
                            f"Only {stock} items available in stock for size {size}. "
                            f"You already have {existing.quantity} in your cart."
                        )
                    line = existing
                    break
                line = CartItem(cart_id=cart.id, product_id=product_id, size=size, quantity=qnty, price_at_time=price)
                session.add(line)
                try:
                    session.flush()
                    break
                except IntegrityError:
                    # a concurrent add inserted the same line; retry as a merge
                    session.rollback()
            else:
                raise InsufficientStock(f"Only {stock} items available in stock for size {size}")

            session.expire(cart)
            log_event("info", "cart.item_added", user_id=user_id, product_id=product_id, size=size, quantity=line.quantity)
            return {"item": to_cart_line_dto(line), "summary": summarize(cart)}

    def update_quantity(self, *, user_id: str, product_id: str, size: Optional[str], quantity: int) -> Dict:
        qnty = ensure_positive_int(quantity, "quantity")
        with self._session_factory() as session:
            product = find_product(session, product_id)
            size = line_size(product, size)
            cart = load_cart(session, user_id)
            line = session.get(CartItem, (cart.id, product_id, size))
            if line is None:
                raise LineNotFound()
            if product is None or not product.is_active:
                raise ProductUnavailable()
            price, stock = resolve_size(product, size)
            if stock < qnty:
                raise InsufficientStock(f"Only {stock} items available in stock for size {size}")
            line.quantity = qnty
            line.price_at_time = price
            session.flush()
            session.expire(cart)
            return {"item": to_cart_line_dto(line), "summary": summarize(cart)}

    def remove_item(self, *, user_id: str, product_id: str, size: Optional[str] = None) -> Dict:
        with self._session_factory() as session:
            size = line_size(find_product(session, product_id), size)
            cart = load_cart(session, user_id)
            line = session.get(CartItem, (cart.id, product_id, size))
            if line is None:
                raise LineNotFound()
            session.delete(line)
            session.flush()
            session.expire(cart)
            return {"summary": summarize(cart)}

    def clear(self, *, user_id: str) -> int:
        with self._session_factory() as session:
            removed = clear_cart_lines(session, user_id)
            log_event("info", "cart.cleared", user_id=user_id, lines=removed)
            return removed

    def validate(self, *, user_id: str) -> Dict:
        with self._session_factory() as session:
            cart = load_cart(session, user_id)
            return validate_cart(session, cart)
