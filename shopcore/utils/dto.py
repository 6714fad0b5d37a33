from typing import Any, Dict


def _money(value) -> float:
    return float(value or 0)


def _iso(value):
    return value.isoformat() if value else None


def to_product_dto(row: Any) -> Dict:
    return {
        "id": getattr(row, "id", None),
        "name": getattr(row, "name", None),
        "slug": getattr(row, "slug", None),
        "description": getattr(row, "description", None),
        "category_id": getattr(row, "category_id", None),
        "price": _money(row.display_price),
        "base_price": _money(getattr(row, "base_price", 0)),
        "stock_quantity": getattr(row, "stock_quantity", 0) or 0,
        "sizes": [s.to_dict() for s in row.sizes],
        "images": getattr(row, "images", None) or [],
        "average_rating": float(getattr(row, "average_rating", 0) or 0),
        "total_reviews": getattr(row, "total_reviews", 0) or 0,
        "is_active": bool(getattr(row, "is_active", True)),
    }


def to_cart_line_dto(row: Any) -> Dict:
    return {
        "product_id": row.product_id,
        "size": row.size,
        "quantity": row.quantity,
        "price_at_time": _money(row.price_at_time),
    }


def to_order_dto(row: Any) -> Dict:
    return {
        "id": row.id,
        "order_number": row.order_number,
        "user_id": row.user_id,
        "items": row.items or [],
        "total_items": row.total_items,
        "total_amount": _money(row.total_amount),
        "shipping_amount": _money(row.shipping_amount),
        "discount_amount": _money(row.discount_amount),
        "final_amount": _money(row.final_amount),
        "currency": row.currency,
        "status": row.status,
        "payment_status": row.payment_status,
        "shipping_address": row.shipping_address,
        "billing_address": row.billing_address,
        "notes": row.notes,
        "tracking_number": row.tracking_number,
        "payment_id": row.payment_id,
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
    }


def to_payment_dto(row: Any) -> Dict:
    return {
        "id": row.id,
        "order_id": row.order_id,
        "gateway_order_id": row.gateway_order_id,
        "gateway_payment_id": row.gateway_payment_id,
        "amount": _money(row.amount),
        "currency": row.currency,
        "status": row.status,
        "payment_method": row.payment_method,
        "transaction_details": row.transaction_details or {},
        "created_at": _iso(row.created_at),
    }


def to_review_dto(row: Any) -> Dict:
    return {
        "id": row.id,
        "product_id": row.product_id,
        "user_id": row.user_id,
        "rating": row.rating,
        "title": row.title,
        "comment": row.comment,
        "created_at": _iso(row.created_at),
    }
