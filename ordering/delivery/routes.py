# ordering/delivery/routes.py
from flask import current_app, request, jsonify
from flask_jwt_extended import get_jwt_identity

from . import bp
from ..extensions import db
from ..model import DeliveryConfig
from ..services import store
from ..services.delivery_service import (
    Coordinates,
    DeliverySettings,
    calculate_delivery_fee,
    load_settings,
)
from ..utils.api import api_ok, api_error
from ..utils.decorators import role_required
from ..utils.money import D, round_money


def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


def _settings_api(s: DeliverySettings):
    return {
        "store_latitude": s.store.lat,
        "store_longitude": s.store.lng,
        "tiers": [{"max_km": t.max_km, "fee": float(t.fee)} for t in s.tiers],
        "free_delivery_enabled": s.free_delivery_enabled,
        "free_delivery_threshold": float(s.free_delivery_threshold),
        "max_delivery_distance_km": s.max_distance_km,
    }


@bp.get("/config")
def get_config():
    row = store.current_delivery_config()
    if row is not None:
        return ok("delivery config", row.as_api())
    return ok("delivery config (defaults)", _settings_api(load_settings(current_app.config)))


@bp.put("/config")
@role_required("admin", "employee", message="Only staff can change delivery settings")
def put_config():
    data = request.get_json(silent=True) or {}
    row = store.current_delivery_config()
    base = DeliverySettings.from_model(row) if row else DeliverySettings.from_config(current_app.config)

    store_coords = base.store
    if "store_latitude" in data or "store_longitude" in data:
        store_coords = Coordinates.parse({
            "lat": data.get("store_latitude", base.store.lat),
            "lng": data.get("store_longitude", base.store.lng),
        })
        if store_coords is None:
            return err("store_latitude/store_longitude are not valid coordinates", 422)

    tiers = DeliverySettings.parse_tiers(data["tiers"]) if "tiers" in data else base.tiers

    try:
        max_km = float(data.get("max_delivery_distance_km", base.max_distance_km))
    except (TypeError, ValueError):
        return err("max_delivery_distance_km must be a number", 422)
    if max_km <= 0:
        return err("max_delivery_distance_km must be > 0", 422)

    threshold = round_money(D(data.get("free_delivery_threshold", base.free_delivery_threshold)))
    if threshold < 0:
        return err("free_delivery_threshold must be >= 0", 422)

    if row is None:
        row = DeliveryConfig()
        db.session.add(row)
    row.store_name = data.get("store_name", row.store_name)
    row.store_latitude = store_coords.lat
    row.store_longitude = store_coords.lng
    row.tiers = [{"max_km": t.max_km, "fee": float(t.fee)} for t in tiers]
    row.free_delivery_enabled = bool(data.get("free_delivery_enabled", base.free_delivery_enabled))
    row.free_delivery_threshold = threshold
    row.max_delivery_distance_km = max_km
    row.updated_by = int(get_jwt_identity())
    db.session.commit()

    current_app.logger.info("delivery config updated by user %s", row.updated_by)
    return ok("Delivery config saved", row.as_api())


@bp.post("/quote")
def quote():
    """Body: {lat, lng, subtotal}. Preview only; checkout recomputes everything."""
    data = request.get_json(silent=True) or {}
    coords = Coordinates.parse(data.get("coordinates") or data)
    if coords is None:
        return err("lat and lng are required", 422)
    subtotal = D(data.get("subtotal") or 0)
    q = calculate_delivery_fee(load_settings(current_app.config), coords, subtotal)
    return ok("delivery quote", q.as_api())
