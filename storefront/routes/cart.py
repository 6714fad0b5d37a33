"""購物車 API 路由。"""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, request

from ..auth import current_user_id, require_auth
from ..responses import ok


cart_bp = Blueprint("shop_cart", __name__, url_prefix="/api/cart")


def _components() -> Dict[str, Any]:
    return current_app.extensions["shop_components"]


@cart_bp.get("")
@require_auth
def get_cart():
    return ok(_components()["cart_service"].get_cart(user_id=current_user_id()))


@cart_bp.post("")
@require_auth
def add_to_cart():
    payload = request.get_json(silent=True) or {}
    result = _components()["cart_service"].add_item(
        user_id=current_user_id(),
        product_id=str(payload.get("product_id", "")).strip(),
        quantity=payload.get("quantity", 1),
        size=payload.get("size"),
    )
    return ok(result, "Item added to cart successfully", 201)


@cart_bp.put("/<product_id>")
@require_auth
def update_cart_item(product_id: str):
    payload = request.get_json(silent=True) or {}
    result = _components()["cart_service"].update_quantity(
        user_id=current_user_id(),
        product_id=product_id,
        size=payload.get("size"),
        quantity=payload.get("quantity"),
    )
    return ok(result, "Cart item updated successfully")


@cart_bp.delete("/<product_id>")
@require_auth
def remove_cart_item(product_id: str):
    result = _components()["cart_service"].remove_item(
        user_id=current_user_id(),
        product_id=product_id,
        size=request.args.get("size"),
    )
    return ok(result, "Item removed from cart successfully")


@cart_bp.delete("")
@require_auth
def clear_cart():
    _components()["cart_service"].clear(user_id=current_user_id())
    return ok(message="Cart cleared successfully")


@cart_bp.post("/validate")
@require_auth
def validate_cart():
    return ok(_components()["cart_service"].validate(user_id=current_user_id()))
