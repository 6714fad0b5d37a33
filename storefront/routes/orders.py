"""訂單 API 路由（含管理端狀態更新）。"""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, request

from ..auth import current_user_id, require_admin, require_auth
from ..responses import ok


orders_bp = Blueprint("shop_orders", __name__, url_prefix="/api/orders")


def _components() -> Dict[str, Any]:
    return current_app.extensions["shop_components"]


def _paging():
    return request.args.get("page", 1, type=int), request.args.get("limit", 10, type=int)


@orders_bp.get("")
@require_auth
def list_my_orders():
    page, limit = _paging()
    result = _components()["order_service"].list_orders(
        user_id=current_user_id(),
        status=request.args.get("status"),
        page=page,
        page_size=limit,
    )
    return ok(result)


@orders_bp.post("")
@require_auth
def create_order():
    payload = request.get_json(silent=True) or {}
    order = _components()["order_service"].create_from_cart(
        user_id=current_user_id(),
        addresses={
            "shipping": payload.get("shipping_address"),
            "billing": payload.get("billing_address"),
        },
        notes=payload.get("notes"),
    )
    return ok({"order": order}, "Order created successfully", 201)


@orders_bp.get("/admin/all")
@require_admin
def list_all_orders():
    page, limit = _paging()
    result = _components()["order_service"].list_all_orders(
        status=request.args.get("status"),
        payment_status=request.args.get("payment_status"),
        search=request.args.get("search"),
        page=page,
        page_size=limit,
    )
    return ok(result)


@orders_bp.get("/<order_id>")
@require_auth
def get_order(order_id: str):
    order = _components()["order_service"].get_order(order_id, user_id=current_user_id())
    return ok({"order": order})


@orders_bp.put("/<order_id>/cancel")
@require_auth
def cancel_order(order_id: str):
    order = _components()["order_service"].cancel(order_id, user_id=current_user_id())
    return ok({"order": order}, "Order cancelled successfully")


@orders_bp.put("/<order_id>/status")
@require_admin
def update_order_status(order_id: str):
    payload = request.get_json(silent=True) or {}
    order = _components()["order_service"].update_status(
        order_id,
        str(payload.get("status", "")).strip(),
        tracking_number=payload.get("tracking_number"),
    )
    return ok({"order": order}, "Order status updated successfully")


@orders_bp.put("/<order_id>/payment-status")
@require_admin
def update_payment_status(order_id: str):
    payload = request.get_json(silent=True) or {}
    order = _components()["order_service"].update_payment_status(
        order_id, str(payload.get("payment_status", "")).strip()
    )
    return ok({"order": order}, "Payment status updated successfully")


@orders_bp.put("/<order_id>/tracking")
@require_admin
def set_tracking(order_id: str):
    payload = request.get_json(silent=True) or {}
    order = _components()["order_service"].set_tracking(order_id, str(payload.get("tracking_number", "")))
    return ok({"order": order}, "Tracking number updated successfully")
