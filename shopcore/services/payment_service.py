from datetime import datetime, timezone
from decimal import Decimal
from typing import Dict, Optional
from uuid import uuid4
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from ..db.session import get_session
from ..models.order import Order
from ..models.payment import Payment
from ..utils.dto import to_payment_dto
from ..utils.validators import ensure_amount
from .cart_service import clear_cart_lines
from .errors import (
    AlreadyPaid,
    Forbidden,
    InvalidSignature,
    InvalidTransition,
    OrderCancelled,
    OrderNotFound,
    PaymentMismatch,
    PaymentNotCompleted,
    PaymentNotFound,
    ValidationFailed,
)
from .logging import log_event
from .order_service import apply_order_status, apply_payment_status
from .payment_gateway import to_minor_units
from . import order_states

PENDING = "pending"
COMPLETED = "completed"
FAILED = "failed"
REFUNDED = "refunded"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _pending_payment(session: Session, order_id: str) -> Optional[Payment]:
    return (
        session.query(Payment)
        .filter(Payment.order_id == order_id, Payment.status == PENDING)
        .first()
    )


def _owned_order(session: Session, order_id: str, user_id: Optional[str]) -> Order:
    order = session.get(Order, order_id) if order_id else None
    if order is None:
        raise OrderNotFound()
    if user_id is not None and order.user_id != user_id:
        raise Forbidden()
    return order


class PaymentService:
    """Payment initiation and reconciliation against the payment gateway.

    The gateway only needs ``create_order``, ``fetch_payment``, ``capture``,
    ``refund`` and ``verify_signature`` (see ``RazorpayGateway``).
    """

    def __init__(self, gateway, session_factory=get_session):
        self._gateway = gateway
        self._session_factory = session_factory

    def _initiation_payload(self, order: Order, payment: Payment, reused: bool) -> Dict:
        return {
            "gateway_order_id": payment.gateway_order_id,
            "amount": float(order.final_amount),
            "currency": payment.currency,
            "order_id": order.id,
            "order_number": order.order_number,
            "payment_id": payment.id,
            "key_id": getattr(self._gateway, "key_id", None),
            "reused": reused,
        }

    def create_payment_order(self, *, order_id: str, user_id: Optional[str] = None) -> Dict:
        with self._session_factory() as session:
            order = _owned_order(session, order_id, user_id)
            if order.payment_status == order_states.PAYMENT_PAID:
                raise AlreadyPaid()
            if order.status == order_states.CANCELLED:
                raise OrderCancelled()
            if order.status == order_states.RETURNED:
                raise OrderCancelled("Cannot pay for returned order")
            # refunded orders cannot be charged again
            if order_states.PAYMENT_PAID not in order_states.PAYMENT_TRANSITIONS.get(order.payment_status, ()):
                raise InvalidTransition(
                    order.payment_status,
                    order_states.PAYMENT_PAID,
                    f"Cannot start a payment for an order whose payment is {order.payment_status}",
                )

            existing = _pending_payment(session, order.id)
            if existing is not None:
                return self._initiation_payload(order, existing, reused=True)

            gateway_order = self._gateway.create_order(
                to_minor_units(order.final_amount), order.currency, order.order_number
            )
            payment = Payment(
                id=str(uuid4()),
                order_id=order.id,
                gateway_order_id=gateway_order["id"],
                amount=order.final_amount,
                currency=order.currency,
                status=PENDING,
                transaction_details={"gateway_order_id": gateway_order["id"]},
            )
            session.add(payment)
            if order.payment_status == order_states.PAYMENT_FAILED:
                apply_payment_status(order, order_states.PAYMENT_PENDING)
            try:
                session.flush()
            except IntegrityError:
                # a concurrent request stored its pending payment first
                session.rollback()
                order = session.get(Order, order_id)
                return self._initiation_payload(order, _pending_payment(session, order_id), reused=True)
            log_event(
                "info",
                "payment.created",
                order_id=order.id,
                payment_id=payment.id,
                gateway_order_id=payment.gateway_order_id,
                amount=payment.amount,
            )
            return self._initiation_payload(order, payment, reused=False)

    def verify_payment(
        self,
        *,
        order_id: str,
        gateway_payment_id: str,
        signature: str,
        user_id: Optional[str] = None,
    ) -> Dict:
        """Confirm a client-reported success against the signature and the gateway's own record."""
        with self._session_factory() as session:
            payment = _pending_payment(session, order_id)
            if payment is None:
                raise PaymentNotFound()
            order = _owned_order(session, order_id, user_id)

            if not self._gateway.verify_signature(payment.gateway_order_id, gateway_payment_id, signature):
                log_event("warning", "payment.signature_invalid", order_id=order_id, payment_id=payment.id)
                raise InvalidSignature()
            order_states.transition_payment(order.payment_status, order_states.PAYMENT_PAID)

            # claim the pending row; a concurrent verify that got here first leaves nothing to claim
            claimed = session.execute(
                update(Payment)
                .where(Payment.id == payment.id, Payment.status == PENDING)
                .values(status=COMPLETED)
                .execution_options(synchronize_session=False)
            )
            if not claimed.rowcount:
                raise PaymentNotFound()

            details = self._gateway.fetch_payment(gateway_payment_id)
            expected_minor = to_minor_units(payment.amount)
            if details.get("order_id") not in (None, payment.gateway_order_id):
                raise PaymentMismatch("Payment belongs to a different gateway order")
            if details.get("amount") is not None and int(details["amount"]) != expected_minor:
                raise PaymentMismatch("Payment amount does not match the order")
            if details.get("status") == "failed":
                raise PaymentMismatch("Gateway reports the payment as failed")
            if details.get("status") == "authorized" and not details.get("captured"):
                details = self._gateway.capture(gateway_payment_id, expected_minor, payment.currency)

            payment.gateway_payment_id = gateway_payment_id
            payment.status = COMPLETED
            payment.payment_method = details.get("method")
            payment.merge_details(
                gateway_payment_id=gateway_payment_id,
                gateway_order_id=payment.gateway_order_id,
                method=details.get("method"),
                amount=details.get("amount"),
                currency=details.get("currency"),
                status=details.get("status"),
                captured=details.get("captured"),
                description=details.get("description"),
            )

            order.payment_id = payment.id
            apply_payment_status(order, order_states.PAYMENT_PAID)
            if order.status == order_states.PENDING:
                apply_order_status(order, order_states.CONFIRMED)
            else:
                log_event("warning", "payment.verified_for_inactive_order", order_id=order.id, status=order.status)
            cleared = clear_cart_lines(session, order.user_id)
            session.flush()
            log_event(
                "info",
                "payment.verified",
                order_id=order.id,
                payment_id=payment.id,
                gateway_payment_id=gateway_payment_id,
                cart_lines_cleared=cleared,
            )
            return {
                "payment_id": payment.id,
                "gateway_payment_id": gateway_payment_id,
                "amount": float(payment.amount),
                "status": payment.status,
                "order_status": order.status,
            }

    def handle_failure(
        self,
        *,
        order_id: str,
        gateway_payment_id: Optional[str],
        error_code: Optional[str],
        error_description: Optional[str],
        user_id: Optional[str] = None,
    ) -> Dict:
        """Record a failed attempt; the order stays pending so a fresh payment can be started."""
        with self._session_factory() as session:
            payment = _pending_payment(session, order_id)
            if payment is None:
                raise PaymentNotFound("Payment record not found")
            _owned_order(session, order_id, user_id)
            payment.gateway_payment_id = gateway_payment_id
            payment.status = FAILED
            payment.merge_details(
                error_code=error_code,
                error_description=error_description,
                failed_at=_now_iso(),
            )
            session.flush()
            log_event(
                "warning",
                "payment.failed",
                order_id=order_id,
                payment_id=payment.id,
                error_code=error_code,
            )
            return to_payment_dto(payment)

    def refund(self, payment_id: str, *, amount=None, notes: Optional[str] = None) -> Dict:
        notes = notes or "Admin refund"
        with self._session_factory() as session:
            payment = session.get(Payment, payment_id) if payment_id else None
            if payment is None:
                raise PaymentNotFound("Payment not found")
            if payment.status != COMPLETED:
                raise PaymentNotCompleted()
            refund_amount = ensure_amount(amount, "amount") or Decimal(str(payment.amount))
            if refund_amount > Decimal(str(payment.amount)):
                raise ValidationFailed("Refund amount exceeds the amount paid")
            order = session.get(Order, payment.order_id)
            if order is not None:
                order_states.transition_payment(order.payment_status, order_states.PAYMENT_REFUNDED)

            refund = self._gateway.refund(payment.gateway_payment_id, to_minor_units(refund_amount), notes)

            payment.status = REFUNDED
            payment.merge_details(
                refund={
                    "id": refund.get("id"),
                    "amount": refund.get("amount"),
                    "status": refund.get("status"),
                    "notes": notes,
                    "processed_at": _now_iso(),
                }
            )
            if order is not None:
                apply_payment_status(order, order_states.PAYMENT_REFUNDED)
            session.flush()
            log_event("info", "payment.refunded", payment_id=payment.id, refund_id=refund.get("id"), amount=refund_amount)
            return {
                "refund_id": refund.get("id"),
                "amount": float(refund_amount),
                "status": refund.get("status"),
            }

    def get_payment_for_order(self, order_id: str, *, user_id: Optional[str] = None) -> Dict:
        with self._session_factory() as session:
            _owned_order(session, order_id, user_id)
            payment = (
                session.query(Payment)
                .filter(Payment.order_id == order_id)
                .order_by(Payment.created_at.desc())
                .first()
            )
            if payment is None:
                raise PaymentNotFound("Payment not found")
            return to_payment_dto(payment)
