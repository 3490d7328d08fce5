# ordering/order/routes.py
from datetime import timedelta

from flask import request, jsonify
from flask_jwt_extended import jwt_required, get_jwt_identity

from . import bp
from ..extensions import db
from ..model import Order
from ..utils.api import api_ok, api_error
from ..utils.dates import parse_iso8601
from ..utils.decorators import role_at_least


def ok(msg, data=None, status=200):
    r = jsonify(api_ok(msg, data)); r.status_code = status; return r
def err(msg, status=400, data=None):
    r = jsonify(api_error(msg, data)); r.status_code = status; return r


def _page_args():
    try:
        page = max(1, int(request.args.get("page", 1)))
        per = min(max(1, int(request.args.get("per_page", 20))), 100)
    except ValueError:
        raise ValueError("page and per_page must be integers")
    return page, per


@bp.get("")
@role_at_least("employee", message="Only staff can list orders")
def list_orders():
    """
    Query params:
      - page, per_page
      - status=received|preparing|ready|delivered|cancelled
      - delivery_type=delivery|pickup
      - phone, email, code=ORD-..., coupon=CODE
      - start=YYYY-MM-DD, end=YYYY-MM-DD (inclusive)
    """
    q = Order.query

    status = request.args.get("status")
    dtype = request.args.get("delivery_type")
    phone = request.args.get("phone")
    email = request.args.get("email")
    code = request.args.get("code")
    coupon = request.args.get("coupon")

    if status: q = q.filter(Order.status == status)
    if dtype:  q = q.filter(Order.delivery_type == dtype)
    if phone:  q = q.filter(Order.customer_phone == phone)
    if email:  q = q.filter(Order.customer_email == email.strip().lower())
    if code:   q = q.filter(Order.code == code)
    if coupon: q = q.filter(Order.promotion_code == coupon.strip().upper())

    start = parse_iso8601(request.args.get("start"))
    end = parse_iso8601(request.args.get("end"))
    if start:
        q = q.filter(Order.created_at >= start)
    if end:
        # make end inclusive for the whole day
        q = q.filter(Order.created_at < end + timedelta(days=1))

    page, per = _page_args()
    paged = q.order_by(Order.created_at.desc()).paginate(page=page, per_page=per, error_out=False)

    return ok("orders", {
        "page": page,
        "per_page": per,
        "total": paged.total,
        "items": [o.as_api() for o in paged.items],
    })


@bp.get("/mine")
@jwt_required()
def my_orders():
    uid = int(get_jwt_identity())
    q = (Order.query.filter(Order.customer_id == uid)
                    .order_by(Order.created_at.desc())
                    .limit(50))
    return ok("orders", [o.as_api() for o in q.all()])


@bp.get("/<int:order_id>")
@role_at_least("employee", message="Only staff can view orders")
def get_order(order_id: int):
    o = db.session.get(Order, order_id)
    if not o: return err("order not found", 404)
    return ok("order", o.as_api())


@bp.get("/by-code/<code>")
@jwt_required()
def get_order_by_code(code):
    o = Order.query.filter_by(code=code).first()
    if not o: return err("order not found", 404)
    if o.customer_id != int(get_jwt_identity()):
        return err("order not found", 404)
    return ok("order", o.as_api())
