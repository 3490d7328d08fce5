# ordering/checkout/routes.py
from flask import request, jsonify
from flask_jwt_extended import jwt_required

from . import bp
from ..services.identity import get_current_customer
from ..services.order_service import CheckoutRequest, OrderAssembler
from ..utils.api import api_ok, api_error


# ---- standard API response format ------------------------------------------
def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


def _load():
    customer = get_current_customer()
    if customer is None:
        return None, None
    return customer, CheckoutRequest.from_payload(request.get_json(silent=True))


@bp.post("/quote")
@jwt_required()
def quote():
    """Server-side price preview; nothing is saved."""
    customer, req = _load()
    if customer is None:
        return err("user not found", 404)
    priced = OrderAssembler().quote(req, customer)
    return ok("quote", priced.as_api())


@bp.post("")
@jwt_required()
def checkout():
    """
    Body:
      lines: [{product_id, quantity, added_ingredients: [id], removed_ingredients: [str],
               special_instructions}]
      delivery_type: delivery | pickup
      delivery_coordinates: {lat, lng}    (delivery only)
      coupon_code, points_requested, customer_phone, notes
    Totals in the body are ignored; the response carries the server's numbers.
    """
    customer, req = _load()
    if customer is None:
        return err("user not found", 404)
    result = OrderAssembler().checkout(req, customer)
    # bookkeeping failures are logged for reconciliation; the order itself succeeded
    return ok("Order placed", {"order": result.order.as_api()}, 201)
