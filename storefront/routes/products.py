"""商品瀏覽與評論 API 路由。"""

from __future__ import annotations

from typing import Any, Dict

from flask import Blueprint, current_app, request

from shopcore.services.errors import ProductUnavailable

from ..auth import current_user_id, is_admin, require_auth
from ..responses import ok


products_bp = Blueprint("shop_products", __name__, url_prefix="/api")


def _components() -> Dict[str, Any]:
    return current_app.extensions["shop_components"]


@products_bp.get("/products")
def list_products():
    result = _components()["catalog_service"].list_products(
        query=request.args.get("search"),
        category=request.args.get("category"),
        min_price=request.args.get("minPrice"),
        max_price=request.args.get("maxPrice"),
        sort_by=request.args.get("sortBy", "createdAt"),
        sort_order=request.args.get("sortOrder", "desc"),
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("limit", 20, type=int),
    )
    return ok(result)


@products_bp.get("/products/<product_id>")
def get_product(product_id: str):
    product = _components()["catalog_service"].get_product(product_id)
    if not product:
        raise ProductUnavailable("Product not found")
    return ok({"product": product})


@products_bp.get("/products/<product_id>/reviews")
def list_reviews(product_id: str):
    result = _components()["review_service"].list_reviews(
        product_id,
        page=request.args.get("page", 1, type=int),
        page_size=request.args.get("limit", 10, type=int),
    )
    return ok(result)


@products_bp.post("/products/<product_id>/reviews")
@require_auth
def create_review(product_id: str):
    payload = request.get_json(silent=True) or {}
    review = _components()["review_service"].create_review(
        product_id=product_id,
        user_id=current_user_id(),
        rating=payload.get("rating"),
        title=payload.get("title"),
        comment=payload.get("comment"),
    )
    return ok({"review": review}, "Review created successfully", 201)


@products_bp.delete("/reviews/<review_id>")
@require_auth
def delete_review(review_id: str):
    _components()["review_service"].delete_review(review_id, user_id=current_user_id(), is_admin=is_admin())
    return ok(message="Review deleted successfully")
