"""Storefront Flask 應用：購物車、結帳、金流 API。"""

from __future__ import annotations

import os
from typing import Optional

from flask import Flask

from shopcore.config import AppConfig, load_env
from shopcore.db.session import init_db, make_session_factory
from shopcore.services.cart_service import CartService
from shopcore.services.catalog_service import CatalogService
from shopcore.services.logging import configure_logging
from shopcore.services.order_service import OrderService
from shopcore.services.payment_gateway import RazorpayGateway
from shopcore.services.payment_service import PaymentService
from shopcore.services.review_service import ReviewService

from .responses import register_error_handlers
from .routes import cart, orders, payments, products


def create_app(
    config: Optional[AppConfig] = None,
    *,
    session_factory=None,
    gateway=None,
) -> Flask:
    config = config or load_env()
    configure_logging(config.log_level)

    app = Flask(__name__)
    app.config["SECRET_KEY"] = config.secret_key
    app.config["SHOP_CONFIG"] = config

    if session_factory is None:
        session_factory = make_session_factory(config.database_url)
        init_db(session_factory.engine)
    gateway = gateway or RazorpayGateway.from_config(config)
    if not getattr(gateway, "configured", True):
        app.logger.warning("Razorpay credentials not found. Payment features will be disabled.")

    catalog = CatalogService(session_factory)
    components = {
        "catalog_service": catalog,
        "cart_service": CartService(session_factory),
        "order_service": OrderService(
            session_factory,
            currency=config.currency,
            on_stock_change=catalog.invalidate_cache,
        ),
        "payment_service": PaymentService(gateway, session_factory),
        "review_service": ReviewService(session_factory, on_rating_change=catalog.invalidate_cache),
    }
    app.extensions["shop_components"] = components

    app.register_blueprint(products.products_bp)
    app.register_blueprint(cart.cart_bp)
    app.register_blueprint(orders.orders_bp)
    app.register_blueprint(payments.payments_bp)
    register_error_handlers(app)

    return app


def main() -> None:
    app = create_app()
    app.run(host="0.0.0.0", port=int(os.getenv("PORT", "5000")), debug=False, threaded=True)


if __name__ == "__main__":
    main()
