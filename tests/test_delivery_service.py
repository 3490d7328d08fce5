"""Tests for ordering.services.delivery_service."""

from decimal import Decimal

import pytest

from ordering.errors import InvalidRequest, MissingCoordinates, OutOfServiceArea
from ordering.extensions import db
from ordering.model import DeliveryConfig
from ordering.services.delivery_service import (
    PICKUP_QUOTE,
    Coordinates,
    DeliverySettings,
    calculate_delivery_fee,
    haversine_km,
    load_settings,
    quote_for,
    tier_fee,
)

from .conftest import TEST_CONFIG, point_at_km

SETTINGS = DeliverySettings.from_config(TEST_CONFIG)


def _at(km):
    return Coordinates.parse(point_at_km(km))


def test_haversine_matches_known_offset():
    assert haversine_km(0, 0, 0, 0) == 0
    c = _at(4.2)
    assert haversine_km(SETTINGS.store.lat, SETTINGS.store.lng, c.lat, c.lng) == pytest.approx(4.2, abs=1e-6)


def test_four_point_two_km_lands_in_second_tier():
    q = calculate_delivery_fee(SETTINGS, _at(4.2), Decimal("8100"))
    assert q.fee == Decimal("2500.00")
    assert q.is_free is False
    assert q.distance_km == pytest.approx(4.2, abs=1e-6)


@pytest.mark.parametrize("km, fee", [
    (0.5, "1500.00"),
    (2.99, "1500.00"),
    (3.01, "2500.00"),
    (4.9, "2500.00"),
    (6.5, "3500.00"),
    (9.9, "3500.00"),
])
def test_tier_selection(km, fee):
    assert calculate_delivery_fee(SETTINGS, _at(km), Decimal("100")).fee == Decimal(fee)


def test_tier_upper_bound_is_exclusive():
    assert tier_fee(SETTINGS.tiers, 3.0) == Decimal("2500.00")


def test_past_last_tier_uses_last_fee():
    settings = DeliverySettings.from_config(dict(TEST_CONFIG, MAX_DELIVERY_DISTANCE_KM=15))
    assert calculate_delivery_fee(settings, _at(12), Decimal("100")).fee == Decimal("3500.00")


@pytest.mark.parametrize("net, fee, is_free", [
    (Decimal("14999"), Decimal("2500.00"), False),
    (Decimal("15000"), Decimal("0"), True),
    (Decimal("15001"), Decimal("0"), True),
])
def test_free_delivery_threshold_boundary(net, fee, is_free):
    q = calculate_delivery_fee(SETTINGS, _at(4.2), net)
    assert q.fee == fee
    assert q.is_free is is_free


def test_free_delivery_can_be_switched_off():
    settings = DeliverySettings.from_config(dict(TEST_CONFIG, FREE_DELIVERY_ENABLED=False))
    assert calculate_delivery_fee(settings, _at(4.2), Decimal("50000")).fee == Decimal("2500.00")


def test_out_of_service_area_suggests_pickup():
    with pytest.raises(OutOfServiceArea) as exc:
        calculate_delivery_fee(SETTINGS, _at(10.5), Decimal("100"))
    assert exc.value.payload()["suggestion"] == "pickup"
    assert exc.value.distance_km == pytest.approx(10.5, abs=1e-6)


def test_out_of_area_wins_over_free_delivery():
    with pytest.raises(OutOfServiceArea):
        calculate_delivery_fee(SETTINGS, _at(11), Decimal("99999"))


def test_pickup_needs_no_coordinates():
    assert quote_for("pickup", None, None, Decimal("100")) is PICKUP_QUOTE
    assert PICKUP_QUOTE.fee == 0


def test_delivery_needs_coordinates():
    with pytest.raises(MissingCoordinates):
        quote_for("delivery", None, SETTINGS, Decimal("100"))
    with pytest.raises(InvalidRequest):
        quote_for("drone", _at(1), SETTINGS, Decimal("100"))


@pytest.mark.parametrize("value", [None, {}, {"lat": "x", "lng": 1}, {"lat": 91, "lng": 0}, {"lat": 0, "lng": 181}])
def test_bad_coordinates_parse_to_none(value):
    assert Coordinates.parse(value) is None


def test_coordinates_accept_longitude_aliases():
    assert Coordinates.parse({"latitude": "1.5", "longitude": "2.5"}) == Coordinates(1.5, 2.5)
    assert Coordinates.parse({"lat": 1, "lon": 2}) == Coordinates(1.0, 2.0)


def test_tiers_are_sorted_and_validated():
    tiers = DeliverySettings.parse_tiers([{"max_km": 6, "fee": 2500}, {"max_km": 3, "fee": 1500}])
    assert [t.max_km for t in tiers] == [3, 6]
    with pytest.raises(ValueError):
        DeliverySettings.parse_tiers([])
    with pytest.raises(ValueError):
        DeliverySettings.parse_tiers([{"max_km": 3}])


def test_saved_config_row_overrides_defaults(app):
    db.session.add(DeliveryConfig(
        store_latitude=TEST_CONFIG["STORE_LATITUDE"],
        store_longitude=TEST_CONFIG["STORE_LONGITUDE"],
        tiers=[{"max_km": 5, "fee": 1000}],
        free_delivery_threshold=Decimal("20000"),
        max_delivery_distance_km=5,
    ))
    db.session.commit()

    settings = load_settings(app.config)

    assert settings.max_distance_km == 5
    assert calculate_delivery_fee(settings, _at(4.2), Decimal("16000")).fee == Decimal("1000.00")
