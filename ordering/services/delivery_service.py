# ordering/services/delivery_service.py
"""
Delivery fee from distance tiers.

Distance is the great-circle (haversine) distance between the store and the
customer. Tiers are scanned in ascending order and the first tier whose upper
bound is greater than the distance wins; past the last tier (but still inside
the service area) the last tier's fee applies. A net subtotal at or above the
free-delivery threshold waives the fee. Pickup never has a fee.
"""
from __future__ import annotations

import math
from dataclasses import dataclass

from . import store
from ..errors import InvalidRequest, MissingCoordinates, OutOfServiceArea
from ..utils.money import D, round_money, Money
from ..utils.net import clamp_lat_lng, parse_coord

EARTH_RADIUS_KM = 6371.0

DELIVERY = "delivery"
PICKUP = "pickup"
DELIVERY_TYPES = (DELIVERY, PICKUP)


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lng: float

    @classmethod
    def parse(cls, value):
        """{lat, lng} (or lon/longitude/latitude) -> Coordinates, None if missing or invalid."""
        if not isinstance(value, dict):
            return None
        lat = parse_coord(value.get("lat", value.get("latitude")))
        lng = parse_coord(value.get("lng", value.get("lon", value.get("longitude"))))
        lat, lng = clamp_lat_lng(lat, lng)
        if lat is None or lng is None:
            return None
        return cls(lat=lat, lng=lng)


@dataclass(frozen=True)
class DeliveryTier:
    max_km: float
    fee: Money


@dataclass(frozen=True)
class DeliverySettings:
    store: Coordinates
    tiers: tuple
    free_delivery_threshold: Money
    max_distance_km: float
    free_delivery_enabled: bool = True

    @staticmethod
    def parse_tiers(raw) -> tuple:
        tiers = []
        for t in raw or []:
            try:
                tiers.append(DeliveryTier(max_km=float(t["max_km"]), fee=round_money(D(t["fee"]))))
            except (KeyError, TypeError, ValueError, ArithmeticError):
                raise ValueError(f"invalid delivery tier: {t!r}")
        if not tiers:
            raise ValueError("at least one delivery tier is required")
        if any(t.max_km <= 0 or t.fee < 0 for t in tiers):
            raise ValueError("tier bounds must be > 0 and fees >= 0")
        return tuple(sorted(tiers, key=lambda t: t.max_km))

    @classmethod
    def from_model(cls, cfg):
        return cls(
            store=Coordinates(cfg.store_latitude, cfg.store_longitude),
            tiers=cls.parse_tiers(cfg.tiers),
            free_delivery_threshold=D(cfg.free_delivery_threshold),
            max_distance_km=float(cfg.max_delivery_distance_km),
            free_delivery_enabled=cfg.free_delivery_enabled is not False,
        )

    @classmethod
    def from_config(cls, config):
        return cls(
            store=Coordinates(float(config["STORE_LATITUDE"]), float(config["STORE_LONGITUDE"])),
            tiers=cls.parse_tiers(config["DELIVERY_TIERS"]),
            free_delivery_threshold=D(config["FREE_DELIVERY_THRESHOLD"]),
            max_distance_km=float(config["MAX_DELIVERY_DISTANCE_KM"]),
            free_delivery_enabled=bool(config.get("FREE_DELIVERY_ENABLED", True)),
        )


@dataclass(frozen=True)
class DeliveryQuote:
    fee: Money
    distance_km: float
    is_free: bool

    def as_api(self):
        return {"fee": float(self.fee), "distance_km": round(self.distance_km, 2), "is_free": self.is_free}


PICKUP_QUOTE = DeliveryQuote(fee=D(0), distance_km=0.0, is_free=False)


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    to_rad = math.radians
    d_lat = to_rad(lat2 - lat1)
    d_lng = to_rad(lng2 - lng1)
    a = (math.sin(d_lat / 2) ** 2
         + math.cos(to_rad(lat1)) * math.cos(to_rad(lat2)) * math.sin(d_lng / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def tier_fee(tiers, distance_km: float) -> Money:
    for tier in tiers:
        if distance_km < tier.max_km:
            return tier.fee
    return tiers[-1].fee


def calculate_delivery_fee(settings: DeliverySettings, coords: Coordinates, net_subtotal) -> DeliveryQuote:
    distance = haversine_km(settings.store.lat, settings.store.lng, coords.lat, coords.lng)

    if distance > settings.max_distance_km:
        raise OutOfServiceArea(distance, settings.max_distance_km)

    if settings.free_delivery_enabled and D(net_subtotal) >= settings.free_delivery_threshold:
        return DeliveryQuote(fee=D(0), distance_km=distance, is_free=True)

    return DeliveryQuote(fee=tier_fee(settings.tiers, distance), distance_km=distance, is_free=False)


def quote_for(delivery_type: str, coords: Coordinates | None, settings: DeliverySettings | None, net_subtotal) -> DeliveryQuote:
    if delivery_type == PICKUP:
        return PICKUP_QUOTE
    if delivery_type != DELIVERY:
        raise InvalidRequest("delivery_type must be 'delivery' or 'pickup'.", {"delivery_type": delivery_type})
    if coords is None:
        raise MissingCoordinates()
    return calculate_delivery_fee(settings, coords, net_subtotal)


def load_settings(config) -> DeliverySettings:
    """Saved delivery_config row if there is one, else the app config defaults."""
    row = store.current_delivery_config()
    if row is not None:
        return DeliverySettings.from_model(row)
    return DeliverySettings.from_config(config)
