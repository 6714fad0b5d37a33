import pytest

from conftest import ADDRESS, stock_of
from shopcore.models import Order, Product
from shopcore.services.errors import (
    AlreadyCancelled,
    CartEmpty,
    CartInvalid,
    InsufficientStock,
    InvalidTransition,
    OrderNotFound,
    OrderNumberUnavailable,
    ValidationFailed,
)
from shopcore.services import order_service as order_module


def _checkout(order_service, user_id="u1", **kwargs):
    return order_service.create_from_cart(user_id=user_id, addresses={"shipping": ADDRESS}, **kwargs)


def _order_count(session_factory):
    with session_factory() as session:
        return session.query(Order).count()


def test_checkout_scenario_sized_product(cart_service, order_service, catalog, session_factory):
    cart_service.add_item(user_id="u1", product_id="oil", quantity=2, size="250ml")
    order = _checkout(order_service)

    assert order["total_amount"] == 200.0
    assert order["final_amount"] == 200.0
    assert order["shipping_amount"] == 0.0
    assert order["discount_amount"] == 0.0
    assert order["status"] == "pending"
    assert order["payment_status"] == "pending"
    assert order["items"] == [
        {"product_id": "oil", "name": "Argan Oil", "quantity": 2, "price": 100.0, "size": "250ml"}
    ]
    assert stock_of(session_factory, "oil", "250ml") == 3
    assert stock_of(session_factory, "oil", "500ml") == 2


def test_checkout_flat_product_decrements_flat_stock(cart_service, order_service, catalog, session_factory):
    cart_service.add_item(user_id="u1", product_id="soap", quantity=4, size="bar")
    _checkout(order_service)
    assert stock_of(session_factory, "soap") == 6


def test_checkout_freezes_prices_and_keeps_cart(cart_service, order_service, catalog, session_factory):
    cart_service.add_item(user_id="u1", product_id="oil", quantity=1, size="500ml")
    cart_service.add_item(user_id="u1", product_id="soap", quantity=2, size="bar")
    order = _checkout(order_service)
    assert order["final_amount"] == 280.0

    with session_factory() as session:
        session.get(Product, "soap").base_price = 75
    again = order_service.get_order(order["id"], user_id="u1")
    assert sorted(line["price"] for line in again["items"]) == [50.0, 180.0]
    assert again["final_amount"] == 280.0
    assert len(cart_service.get_cart(user_id="u1")["items"]) == 2


def test_billing_defaults_to_shipping(cart_service, order_service, catalog):
    cart_service.add_item(user_id="u1", product_id="soap", quantity=1, size="bar")
    order = _checkout(order_service, notes="  leave at door ")
    assert order["billing_address"]["address_line1"] == ADDRESS["address_line1"]
    assert order["billing_address"]["type"] == "billing"
    assert order["shipping_address"]["country"] == "India"
    assert order["notes"] == "leave at door"


def test_order_number_format():
    number = order_module.generate_order_number()
    assert number.startswith("PN-")
    assert len(number) == 12
    assert number[3:].isdigit()


def test_empty_cart_is_rejected(order_service, catalog, session_factory):
    with pytest.raises(CartEmpty):
        _checkout(order_service)
    assert _order_count(session_factory) == 0


def test_missing_shipping_address(cart_service, order_service, catalog):
    cart_service.add_item(user_id="u1", product_id="soap", quantity=1, size="bar")
    with pytest.raises(ValidationFailed):
        order_service.create_from_cart(user_id="u1", addresses={})


def test_invalid_cart_creates_nothing(cart_service, order_service, catalog, session_factory):
    cart_service.add_item(user_id="u1", product_id="oil", quantity=2, size="250ml")
    cart_service.add_item(user_id="u1", product_id="soap", quantity=1, size="bar")
    with session_factory() as session:
        session.get(Product, "soap").is_active = False

    with pytest.raises(CartInvalid) as exc:
        _checkout(order_service)
    assert exc.value.errors == ["Neem Soap is no longer available"]
    assert _order_count(session_factory) == 0
    assert stock_of(session_factory, "oil", "250ml") == 5


def test_stock_race_rolls_back_whole_order(cart_service, order_service, catalog, session_factory, monkeypatch):
    cart_service.add_item(user_id="u1", product_id="oil", quantity=2, size="250ml")
    cart_service.add_item(user_id="u1", product_id="soap", quantity=3, size="bar")

    real_decrement = order_module.decrement_stock

    def decrement_after_competitor(session, product, size, quantity):
        if product.id == "soap":
            # a competing checkout took the soap between validation and decrement
            session.execute(
                Product.__table__.update().where(Product.id == "soap").values(stock_quantity=1)
            )
        return real_decrement(session, product, size, quantity)

    monkeypatch.setattr(order_module, "decrement_stock", decrement_after_competitor)
    with pytest.raises(InsufficientStock):
        _checkout(order_service)

    assert _order_count(session_factory) == 0
    assert stock_of(session_factory, "oil", "250ml") == 5
    assert stock_of(session_factory, "soap") == 10


def test_second_checkout_for_last_units_fails(cart_service, order_service, catalog, session_factory):
    cart_service.add_item(user_id="u1", product_id="oil", quantity=2, size="500ml")
    cart_service.add_item(user_id="u2", product_id="oil", quantity=2, size="500ml")
    _checkout(order_service, user_id="u1")
    with pytest.raises(CartInvalid):
        _checkout(order_service, user_id="u2")
    assert stock_of(session_factory, "oil", "500ml") == 0
    assert _order_count(session_factory) == 1


def test_decrement_stock_refuses_to_go_negative(catalog, session_factory):
    with pytest.raises(InsufficientStock):
        with session_factory() as session:
            order_module.decrement_stock(session, session.get(Product, "oil"), "500ml", 3)
    assert stock_of(session_factory, "oil", "500ml") == 2


def _placed_order(cart_service, order_service, user_id="u1"):
    cart_service.add_item(user_id=user_id, product_id="soap", quantity=1, size="bar")
    return _checkout(order_service, user_id=user_id)


def test_status_walk_through_lifecycle(cart_service, order_service, catalog):
    order = _placed_order(cart_service, order_service)
    for status in ("confirmed", "shipped", "delivered", "returned"):
        order = order_service.update_status(order["id"], status)
    assert order["status"] == "returned"


def test_status_cannot_skip_states(cart_service, order_service, catalog):
    order = _placed_order(cart_service, order_service)
    with pytest.raises(InvalidTransition):
        order_service.update_status(order["id"], "delivered")
    with pytest.raises(InvalidTransition):
        order_service.update_status(order["id"], "bogus")


def test_tracking_number_recorded_with_status(cart_service, order_service, catalog):
    order = _placed_order(cart_service, order_service)
    order_service.update_status(order["id"], "confirmed")
    order = order_service.update_status(order["id"], "shipped", tracking_number=" TRK123 ")
    assert order["tracking_number"] == "TRK123"


def test_set_tracking_on_its_own(cart_service, order_service, catalog):
    order = _placed_order(cart_service, order_service)
    assert order_service.set_tracking(order["id"], "AWB-77")["tracking_number"] == "AWB-77"
    with pytest.raises(ValidationFailed):
        order_service.set_tracking(order["id"], "  ")
    with pytest.raises(OrderNotFound):
        order_service.set_tracking("missing", "AWB-1")


def test_cancel_pending_and_twice(cart_service, order_service, catalog):
    order = _placed_order(cart_service, order_service)
    assert order_service.cancel(order["id"], user_id="u1")["status"] == "cancelled"
    with pytest.raises(AlreadyCancelled):
        order_service.cancel(order["id"], user_id="u1")


@pytest.mark.parametrize(
    "path, message",
    [
        (("confirmed", "shipped"), "Cannot cancel shipped order. Please contact support."),
        (("confirmed", "shipped", "delivered"), "Cannot cancel delivered order"),
    ],
)
def test_cancel_after_dispatch_is_refused(cart_service, order_service, catalog, path, message):
    order = _placed_order(cart_service, order_service)
    for status in path:
        order_service.update_status(order["id"], status)
    with pytest.raises(InvalidTransition) as exc:
        order_service.cancel(order["id"], user_id="u1")
    assert exc.value.message == message


def test_cancel_other_users_order_is_not_found(cart_service, order_service, catalog):
    order = _placed_order(cart_service, order_service)
    with pytest.raises(OrderNotFound):
        order_service.cancel(order["id"], user_id="intruder")


def test_payment_status_machine(cart_service, order_service, catalog):
    order = _placed_order(cart_service, order_service)
    with pytest.raises(InvalidTransition):
        order_service.update_payment_status(order["id"], "refunded")
    order = order_service.update_payment_status(order["id"], "paid")
    order = order_service.update_payment_status(order["id"], "refunded")
    assert order["payment_status"] == "refunded"


def test_listing_orders(cart_service, order_service, catalog):
    first = _placed_order(cart_service, order_service, user_id="u1")
    _placed_order(cart_service, order_service, user_id="u1")
    _placed_order(cart_service, order_service, user_id="u2")
    order_service.cancel(first["id"], user_id="u1")

    mine = order_service.list_orders(user_id="u1")
    assert mine["pagination"]["total"] == 2
    assert len(order_service.list_orders(user_id="u1", status="cancelled")["orders"]) == 1

    everything = order_service.list_all_orders(page_size=2)
    assert everything["pagination"]["total"] == 3
    assert everything["pagination"]["has_next"] is True
    found = order_service.list_all_orders(search=first["order_number"])
    assert [o["id"] for o in found["orders"]] == [first["id"]]


def test_order_number_exhaustion_is_a_conflict(cart_service, order_service, catalog, session_factory, monkeypatch):
    monkeypatch.setattr(order_module, "generate_order_number", lambda: "PN-000000001")
    cart_service.add_item(user_id="u1", product_id="soap", quantity=1)
    cart_service.add_item(user_id="u2", product_id="soap", quantity=2)
    _checkout(order_service, user_id="u1")

    with pytest.raises(OrderNumberUnavailable) as exc:
        _checkout(order_service, user_id="u2")
    assert exc.value.http_status == 409
    assert _order_count(session_factory) == 1
    assert stock_of(session_factory, "soap") == 9
