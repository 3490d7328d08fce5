# ordering/promotion/routes.py
from __future__ import annotations

from decimal import InvalidOperation

from flask import request, jsonify

from . import bp
from ..extensions import db
from ..model import Promotion
from ..services.cart_service import aggregate, resolve_lines
from ..services.promotion_service import KINDS, PERCENTAGE, apply_promotion, normalize_code
from ..utils.api import api_ok, api_error
from ..utils.dates import parse_iso8601
from ..utils.decorators import role_at_least
from ..utils.money import D, round_money


def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


def _money_or_none(v, what):
    if v in (None, ""):
        return None
    try:
        amount = round_money(D(v))
    except (InvalidOperation, ValueError):
        raise ValueError(f"{what} must be a number")
    if amount < 0:
        raise ValueError(f"{what} must be >= 0")
    return amount


@bp.post("")
@role_at_least("employee", message="Only staff can create promotions")
def create_promotion():
    data = request.get_json(silent=True) or {}
    code = normalize_code(data.get("coupon_code") or data.get("code"))
    name = (data.get("name") or "").strip() or code
    kind = (data.get("kind") or PERCENTAGE).strip().lower()
    value = _money_or_none(data.get("value"), "value")

    if not code:
        return err("coupon_code is required")
    if kind not in KINDS:
        return err("kind must be 'percentage', 'fixed_amount' or 'coupon'")
    if value is None or value <= 0:
        return err("value must be > 0")
    if kind == PERCENTAGE and value > 100:
        return err("percentage promotions must be <= 100")

    max_uses = data.get("max_uses")
    if max_uses not in (None, ""):
        try:
            max_uses = int(max_uses)
        except (TypeError, ValueError):
            return err("max_uses must be an integer")
        if max_uses < 1:
            return err("max_uses must be >= 1")
    else:
        max_uses = None

    valid_days = data.get("valid_days")
    if valid_days is not None:
        if not isinstance(valid_days, list) or any(
            isinstance(d, bool) or not isinstance(d, int) or not 0 <= d <= 6 for d in valid_days
        ):
            return err("valid_days must be a list of weekday numbers 0 (Monday) .. 6 (Sunday)")
        valid_days = sorted(set(valid_days)) or None

    starts_at = parse_iso8601(data.get("starts_at"))
    ends_at = parse_iso8601(data.get("ends_at"))
    if data.get("starts_at") and not starts_at:
        return err("Invalid datetime format for starts_at")
    if data.get("ends_at") and not ends_at:
        return err("Invalid datetime format for ends_at")
    if starts_at and ends_at and ends_at <= starts_at:
        return err("ends_at must be after starts_at")

    if Promotion.query.filter(Promotion.coupon_code == code).first():
        return err("Coupon code already exists", 409)

    p = Promotion(
        name=name,
        description=(data.get("description") or "").strip() or None,
        coupon_code=code,
        kind=kind,
        value=value,
        min_purchase=_money_or_none(data.get("min_purchase"), "min_purchase"),
        max_discount=_money_or_none(data.get("max_discount"), "max_discount"),
        max_uses=max_uses,
        current_uses=0,
        starts_at=starts_at,
        ends_at=ends_at,
        valid_days=valid_days,
        is_active=bool(data.get("is_active", True)),
    )
    db.session.add(p)
    db.session.commit()
    return ok("Promotion created", p.as_api(), 201)


@bp.get("")
@role_at_least("employee", message="Only staff can list promotions")
def list_promotions():
    q = Promotion.query
    active = request.args.get("active")
    if active is not None:
        q = q.filter(Promotion.is_active == (active.lower() in {"1", "true", "yes"}))
    return ok("promotions", [p.as_api() for p in q.order_by(Promotion.id.desc()).all()])


@bp.post("/validate")
def validate_promotion():
    """
    Body: {coupon_code, lines: [...]} or {coupon_code, subtotal}.
    With lines the subtotal is computed from the catalog.
    """
    data = request.get_json(silent=True) or {}
    code = data.get("coupon_code") or data.get("code")
    if not normalize_code(code):
        return err("coupon_code is required")

    if data.get("lines"):
        subtotal = aggregate(resolve_lines(data["lines"])).subtotal
    else:
        subtotal = _money_or_none(data.get("subtotal"), "subtotal")
        if subtotal is None:
            return err("lines or subtotal is required")

    applied = apply_promotion(code, subtotal)
    return ok("Coupon is valid", {
        "promotion": applied.as_api(),
        "subtotal": float(subtotal),
        "discount": float(applied.discount),
        "subtotal_after_discount": float(round_money(subtotal - applied.discount)),
    })
