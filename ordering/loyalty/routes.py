# ordering/loyalty/routes.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from . import bp
from ..extensions import db
from ..model import LedgerEntry, User
from ..services import loyalty_service
from ..utils.api import api_ok, api_error
from ..utils.decorators import role_at_least


def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


@bp.get("")
@jwt_required()
def balance():
    user = db.session.get(User, int(get_jwt_identity()))
    if not user:
        return err("user not found", 404)
    entries = (LedgerEntry.query.filter_by(user_id=user.id)
                                .order_by(LedgerEntry.id.desc())
                                .limit(100).all())
    return ok("loyalty", {
        "balance": int(user.loyalty_points or 0),
        "entries": [e.as_api() for e in entries],
    })


@bp.post("/adjust")
@role_at_least("employee", message="Only staff can adjust points")
def adjust():
    """Body: {user_id, delta, note}. Adds a compensating entry."""
    data = request.get_json(silent=True) or {}
    try:
        user_id = int(data.get("user_id"))
    except (TypeError, ValueError):
        return err("user_id is required", 422)
    if not db.session.get(User, user_id):
        return err("user not found", 404)

    entry = loyalty_service.adjust(user_id, data.get("delta"), (data.get("note") or "").strip() or None)
    return ok("Points adjusted", entry.as_api(), 201)
