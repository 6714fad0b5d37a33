import os
import time

os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from decimal import Decimal  # noqa: E402

import jwt  # noqa: E402

import pytest  # noqa: E402

from shopcore.config import AppConfig  # noqa: E402
from shopcore.db.session import init_db, make_session_factory  # noqa: E402
from shopcore.models import Category, Product, ProductSize  # noqa: E402
from shopcore.services.cart_service import CartService  # noqa: E402
from shopcore.services.catalog_service import CatalogService  # noqa: E402
from shopcore.services.order_service import OrderService  # noqa: E402
from shopcore.services.payment_gateway import sign_payment  # noqa: E402
from shopcore.services.payment_service import PaymentService  # noqa: E402
from shopcore.services.review_service import ReviewService  # noqa: E402

GATEWAY_SECRET = "test_secret"
JWT_SECRET = "jwt-test-secret-with-enough-length-for-hs256"

ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "9876543210",
    "address_line1": "12 MG Road",
    "city": "Bengaluru",
    "state": "Karnataka",
    "postal_code": "560001",
}


class FakeGateway:
    """In-memory stand-in for RazorpayGateway that records every call."""

    key_id = "rzp_test_key"
    configured = True

    def __init__(self):
        self.calls = []
        self.payments = {}
        self._orders = 0

    def verify_signature(self, gateway_order_id, gateway_payment_id, signature):
        return sign_payment(GATEWAY_SECRET, gateway_order_id, gateway_payment_id) == signature

    def create_order(self, amount_minor, currency, receipt):
        self.calls.append(("create_order", amount_minor, currency, receipt))
        self._orders += 1
        return {"id": f"order_gw_{self._orders}", "amount": amount_minor, "currency": currency}

    def fetch_payment(self, payment_id):
        self.calls.append(("fetch_payment", payment_id))
        default = {"id": payment_id, "status": "captured", "captured": True, "method": "upi", "currency": "INR"}
        return dict(self.payments.get(payment_id, default))

    def capture(self, payment_id, amount_minor, currency):
        self.calls.append(("capture", payment_id, amount_minor, currency))
        details = dict(self.payments.get(payment_id, {}))
        details.update({"status": "captured", "captured": True})
        return details

    def refund(self, payment_id, amount_minor, notes="Refund"):
        self.calls.append(("refund", payment_id, amount_minor, notes))
        return {"id": "rfnd_1", "amount": amount_minor, "status": "processed"}

    def called(self, name):
        return [c for c in self.calls if c[0] == name]


def bearer_token(user_id, role="user", secret=JWT_SECRET, expires_in=3600):
    now = int(time.time())
    payload = {"userId": user_id, "role": role, "iat": now, "exp": now + expires_in}
    return jwt.encode(payload, secret, algorithm="HS256")


def signature_for(gateway_order_id, payment_id):
    return sign_payment(GATEWAY_SECRET, gateway_order_id, payment_id)


@pytest.fixture
def session_factory():
    factory = make_session_factory("sqlite:///:memory:")
    init_db(factory.engine)
    yield factory
    factory.engine.dispose()


def seed_catalog(session_factory):
    """Seed products: a sized oil, a flat-priced soap and an inactive item."""
    with session_factory() as session:
        session.add(Category(id="cat-1", name="Hair Care", slug="hair-care"))
        oil = Product(id="oil", name="Argan Oil", category_id="cat-1", base_price=Decimal("90"), stock_quantity=0)
        oil.sizes = [
            ProductSize(id="oil-250", size="250ml", price=Decimal("100"), stock_quantity=5),
            ProductSize(id="oil-500", size="500ml", price=Decimal("180"), stock_quantity=2),
        ]
        session.add(oil)
        session.add(Product(id="soap", name="Neem Soap", base_price=Decimal("50"), stock_quantity=10))
        session.add(Product(id="retired", name="Old Shampoo", base_price=Decimal("70"), stock_quantity=4, is_active=False))
    return {"oil": "oil", "soap": "soap", "retired": "retired"}


@pytest.fixture
def catalog(session_factory):
    return seed_catalog(session_factory)


@pytest.fixture
def file_session_factory(tmp_path):
    """SQLite file database; each session gets its own connection, like concurrent requests."""
    factory = make_session_factory(f"sqlite:///{tmp_path / 'shop.db'}")
    init_db(factory.engine)
    seed_catalog(factory)
    yield factory
    factory.engine.dispose()


@pytest.fixture
def cart_service(session_factory):
    return CartService(session_factory)


@pytest.fixture
def order_service(session_factory):
    return OrderService(session_factory, currency="INR")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def payment_service(session_factory, gateway):
    return PaymentService(gateway, session_factory)


@pytest.fixture
def review_service(session_factory):
    return ReviewService(session_factory)


@pytest.fixture
def catalog_service(session_factory):
    return CatalogService(session_factory)


@pytest.fixture
def app_config():
    return AppConfig(
        database_url="sqlite:///:memory:",
        secret_key="test",
        jwt_secret=JWT_SECRET,
        log_level="WARNING",
        currency="INR",
        razorpay_profile="test",
        razorpay_key_id="rzp_test_key",
        razorpay_key_secret=GATEWAY_SECRET,
        gateway_timeout=5.0,
    )


def stock_of(session_factory, product_id, size=None):
    with session_factory() as session:
        product = session.get(Product, product_id)
        return product.stock_for_size(size)
