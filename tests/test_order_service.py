"""Tests for ordering.services.order_service (the checkout state machine)."""

import logging
from decimal import Decimal

import pytest
from sqlalchemy import update
from sqlalchemy.exc import OperationalError

from ordering.errors import (
    CouponExhausted,
    InsufficientPoints,
    MissingCoordinates,
    OutOfServiceArea,
    PersistenceError,
)
from ordering.extensions import db
from ordering.model import LedgerEntry, Order, Promotion, User
from ordering.services import order_service, store
from ordering.services.identity import Customer
from ordering.services.order_service import CheckoutRequest, CheckoutState, OrderAssembler

from .conftest import point_at_km


def _address(lat, lng):
    return "Av. Siempre Viva 742"


@pytest.fixture
def menu(make_product, make_ingredient):
    return {
        "burger": make_product(name="Classic Burger", price=8000),
        "cheese": make_ingredient(name="Extra Cheese", extra_price=500),
        "bacon": make_ingredient(name="Bacon", extra_price=500),
    }


@pytest.fixture
def customer_row(make_user):
    return make_user(points=10)


def _customer(user):
    return Customer.from_user(db.session.get(User, user.id, populate_existing=True))


def _payload(menu, **overrides):
    body = {
        "lines": [{
            "product_id": menu["burger"].id,
            "quantity": 1,
            "added_ingredients": [menu["cheese"].id, menu["bacon"].id],
        }],
        "delivery_type": "pickup",
    }
    body.update(overrides)
    return body


def _assembler(app):
    return OrderAssembler(config=app.config, geocoder=_address)


# -- The worked example, step by step ------------------------------------------


def test_scenario_subtotal(app, menu, customer_row):
    priced = _assembler(app).quote(CheckoutRequest.from_payload(_payload(menu)), _customer(customer_row))
    assert priced.subtotal == Decimal("9000.00")


def test_scenario_coupon(app, menu, customer_row, make_promotion):
    make_promotion(code="SAVE10", value=10, min_purchase=Decimal("5000"))
    req = CheckoutRequest.from_payload(_payload(menu, coupon_code="save10"))

    priced = _assembler(app).quote(req, _customer(customer_row))

    assert priced.promotion_discount == Decimal("900.00")
    assert priced.net_subtotal == Decimal("8100.00")


def test_scenario_delivery_fee(app, menu, customer_row, make_promotion):
    make_promotion(code="SAVE10", value=10, min_purchase=Decimal("5000"))
    req = CheckoutRequest.from_payload(_payload(
        menu, coupon_code="SAVE10", delivery_type="delivery", delivery_coordinates=point_at_km(4.2),
    ))

    priced = _assembler(app).quote(req, _customer(customer_row))

    assert priced.delivery.fee == Decimal("2500.00")
    assert priced.delivery.is_free is False


def test_scenario_full_checkout(app, menu, customer_row, make_promotion):
    promo = make_promotion(code="SAVE10", value=10, min_purchase=Decimal("5000"))
    req = CheckoutRequest.from_payload(_payload(
        menu, coupon_code="SAVE10", points_requested=10,
        delivery_type="delivery", delivery_coordinates=point_at_km(4.2),
    ))
    assembler = _assembler(app)

    result = assembler.checkout(req, _customer(customer_row))

    assert assembler.state is CheckoutState.COMMITTED
    assert result.side_effect_failures == []

    money = result.order.as_api()["money"]
    assert money["subtotal"] == 9000.0
    assert money["promotion_discount"] == 900.0
    assert money["points_discount"] == 1000.0
    assert money["discount"] == 1900.0
    assert money["delivery_fee"] == 2500.0
    assert money["total"] == 9600.0

    order = result.order
    assert order.points_earned == 35
    assert order.points_used == 10
    assert order.delivery_address == "Av. Siempre Viva 742"
    assert order.promotion_code == "SAVE10"
    assert len(order.items) == 1
    assert order.items[0].extras_unit_price == Decimal("1000.00")

    # post-commit bookkeeping
    assert db.session.get(Promotion, promo.id, populate_existing=True).current_uses == 1
    entry = LedgerEntry.query.filter_by(order_id=order.id).one()
    assert entry.delta == 25
    assert entry.balance_after == 35
    assert db.session.get(User, customer_row.id, populate_existing=True).loyalty_points == 35


def test_flat_coupon_covering_subtotal_leaves_only_delivery(app, menu, customer_row, make_promotion):
    make_promotion(code="BIGFLAT", kind="fixed_amount", value=20000)
    req = CheckoutRequest.from_payload(_payload(
        menu, coupon_code="BIGFLAT", points_requested=5,
        delivery_type="delivery", delivery_coordinates=point_at_km(4.2),
    ))

    priced = _assembler(app).quote(req, _customer(customer_row))

    assert priced.promotion_discount == Decimal("9000.00")
    assert priced.points_discount == Decimal("0")
    assert priced.net_subtotal == Decimal("0.00")
    assert priced.total == priced.delivery.fee == Decimal("2500.00")
    assert priced.points_earned == 0


# -- Rejections ----------------------------------------------------------------


def test_client_totals_are_ignored(app, menu, customer_row):
    req = CheckoutRequest.from_payload(_payload(menu, subtotal=1, total=1, discount=8999, delivery_fee=0))

    result = _assembler(app).checkout(req, _customer(customer_row))

    assert result.order.as_api()["money"]["total"] == 9000.0


def test_rejection_persists_nothing(app, menu, customer_row):
    req = CheckoutRequest.from_payload(_payload(menu, points_requested=11))
    assembler = _assembler(app)

    with pytest.raises(InsufficientPoints):
        assembler.checkout(req, _customer(customer_row))

    assert assembler.state is CheckoutState.REJECTED
    assert isinstance(assembler.rejection, InsufficientPoints)
    assert Order.query.count() == 0
    assert LedgerEntry.query.count() == 0


def test_out_of_area_rejects_before_commit(app, menu, customer_row):
    req = CheckoutRequest.from_payload(_payload(
        menu, delivery_type="delivery", delivery_coordinates=point_at_km(25),
    ))
    assembler = _assembler(app)

    with pytest.raises(OutOfServiceArea):
        assembler.checkout(req, _customer(customer_row))
    assert assembler.state is CheckoutState.REJECTED
    assert Order.query.count() == 0


def test_delivery_without_coordinates(app, menu):
    with pytest.raises(MissingCoordinates):
        CheckoutRequest.from_payload(_payload(menu, delivery_type="delivery"))


def test_pickup_ignores_coordinates(app, menu, customer_row):
    req = CheckoutRequest.from_payload(_payload(menu, delivery_coordinates=point_at_km(50)))
    assert req.coordinates is None

    result = _assembler(app).checkout(req, _customer(customer_row))

    assert result.order.delivery_fee == 0
    assert result.order.delivery_address is None


# -- Persistence and side effects ----------------------------------------------


def test_commit_is_retried(app, menu, customer_row, monkeypatch):
    real = store.insert_order
    calls = []

    def flaky(order):
        calls.append(order.code)
        if len(calls) < 3:
            raise OperationalError("INSERT INTO orders", {}, Exception("database is locked"))
        return real(order)

    monkeypatch.setattr(store, "insert_order", flaky)

    result = _assembler(app).checkout(CheckoutRequest.from_payload(_payload(menu)), _customer(customer_row))

    assert len(calls) == 3
    assert Order.query.count() == 1
    assert result.order.code == calls[-1]


def test_commit_failure_becomes_persistence_error(app, menu, customer_row, monkeypatch, make_promotion):
    promo = make_promotion(code="SAVE10", value=10)

    def broken(order):
        raise OperationalError("INSERT INTO orders", {}, Exception("disk I/O error"))

    monkeypatch.setattr(store, "insert_order", broken)
    assembler = _assembler(app)

    with pytest.raises(PersistenceError):
        assembler.checkout(
            CheckoutRequest.from_payload(_payload(menu, coupon_code="SAVE10", points_requested=5)),
            _customer(customer_row),
        )

    assert assembler.state is CheckoutState.REJECTED
    assert db.session.get(Promotion, promo.id, populate_existing=True).current_uses == 0
    assert LedgerEntry.query.count() == 0


def test_side_effect_failure_keeps_the_order(app, menu, customer_row, monkeypatch, caplog):
    def boom(*args, **kwargs):
        raise CouponExhausted("SAVE10")

    monkeypatch.setattr(order_service, "redeem_usage", boom)
    promo_row = Promotion(name="SAVE10", coupon_code="SAVE10", kind="percentage", value=Decimal("10"))
    db.session.add(promo_row)
    db.session.commit()

    with caplog.at_level(logging.ERROR, logger="ordering.services.order_service"):
        result = _assembler(app).checkout(
            CheckoutRequest.from_payload(_payload(menu, coupon_code="SAVE10")), _customer(customer_row),
        )

    assert Order.query.count() == 1
    assert [f.effect for f in result.side_effect_failures] == ["promotion_usage"]
    assert result.side_effect_failures[0].order_code == result.order.code
    assert any("RECONCILE" in r.getMessage() for r in caplog.records)
    # the loyalty entry still ran
    assert LedgerEntry.query.filter_by(order_id=result.order.id).count() == 1


def test_limit_reached_between_pricing_and_commit(app, menu, customer_row, make_promotion):
    promo = make_promotion(code="LAST", value=10, max_uses=1)

    def geocoder_that_races(lat, lng):
        # another checkout takes the last use while this one is committing
        db.session.execute(update(Promotion).where(Promotion.id == promo.id).values(current_uses=1))
        db.session.commit()
        return "somewhere"

    req = CheckoutRequest.from_payload(_payload(
        menu, coupon_code="LAST", delivery_type="delivery", delivery_coordinates=point_at_km(1),
    ))
    result = OrderAssembler(config=app.config, geocoder=geocoder_that_races).checkout(req, _customer(customer_row))

    # order stands, discount included; usage increment is flagged for reconciliation
    assert result.order.promotion_discount == Decimal("900.00")
    assert [f.effect for f in result.side_effect_failures] == ["promotion_usage"]
    assert db.session.get(Promotion, promo.id, populate_existing=True).current_uses == 1


def test_guest_checkout_skips_ledger(app, menu):
    result = _assembler(app).checkout(CheckoutRequest.from_payload(_payload(menu)), None)

    assert result.order.points_earned == 0
    assert LedgerEntry.query.count() == 0
