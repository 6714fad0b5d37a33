"""金流 API 路由：建立付款、驗證、失敗回報與退款。"""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, request

from ..auth import current_user_id, is_admin, require_admin, require_auth
from ..responses import ok


payments_bp = Blueprint("shop_payments", __name__, url_prefix="/api/payments")


def _components() -> Dict[str, Any]:
    return current_app.extensions["shop_components"]


@payments_bp.post("/create-order")
@require_auth
def create_payment_order():
    payload = request.get_json(silent=True) or {}
    result = _components()["payment_service"].create_payment_order(
        order_id=str(payload.get("order_id", "")).strip(),
        user_id=current_user_id(),
    )
    message = "Payment order already exists" if result["reused"] else "Payment order created successfully"
    return ok(result, message)


@payments_bp.post("/verify")
@require_auth
def verify_payment():
    payload = request.get_json(silent=True) or {}
    result = _components()["payment_service"].verify_payment(
        order_id=str(payload.get("order_id", "")).strip(),
        gateway_payment_id=str(payload.get("payment_id", "")).strip(),
        signature=str(payload.get("signature", "")).strip(),
        user_id=current_user_id(),
    )
    return ok(result, "Payment verified successfully")


@payments_bp.post("/failed")
@require_auth
def payment_failed():
    payload = request.get_json(silent=True) or {}
    _components()["payment_service"].handle_failure(
        order_id=str(payload.get("order_id", "")).strip(),
        gateway_payment_id=payload.get("payment_id"),
        error_code=payload.get("error_code"),
        error_description=payload.get("error_description"),
        user_id=current_user_id(),
    )
    return ok(message="Payment failure recorded")


@payments_bp.get("/<order_id>")
@require_auth
def get_payment(order_id: str):
    payment = _components()["payment_service"].get_payment_for_order(
        order_id, user_id=None if is_admin() else current_user_id()
    )
    return ok({"payment": payment})


@payments_bp.post("/<payment_id>/refund")
@require_admin
def refund_payment(payment_id: str):
    payload = request.get_json(silent=True) or {}
    result = _components()["payment_service"].refund(
        payment_id,
        amount=payload.get("amount"),
        notes=payload.get("notes"),
    )
    return ok(result, "Refund processed successfully")
