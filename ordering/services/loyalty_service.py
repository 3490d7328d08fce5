# ordering/services/loyalty_service.py
from __future__ import annotations

import logging

from . import store
from ..errors import InsufficientPoints, InvalidRequest
from ..utils.money import D, round_money, non_negative, Money

logger = logging.getLogger(__name__)

POINT_VALUE = 100          # currency units per redeemed point
ACCRUAL_DIVISOR = 1000
ACCRUAL_RATE = 5

PURCHASE = "purchase"
REDEMPTION = "redemption"
ADJUSTMENT = "adjustment"


def parse_points(value) -> int:
    if value in (None, ""):
        return 0
    if isinstance(value, bool):
        raise InvalidRequest("points must be a whole number >= 0.", {"points": value})
    try:
        points = int(str(value))
    except ValueError:
        raise InvalidRequest("points must be a whole number >= 0.", {"points": value})
    if points < 0:
        raise InvalidRequest("points must be a whole number >= 0.", {"points": points})
    return points


def points_discount(requested: int, balance: int, remaining_subtotal, point_value: int = POINT_VALUE) -> Money:
    """Money value of a redemption, clamped to the points' worth and to what is left to pay."""
    requested = parse_points(requested)
    balance = int(balance or 0)
    if requested > balance:
        raise InsufficientPoints(requested, balance)
    if requested == 0:
        return D(0)
    worth = D(requested) * D(point_value)
    return round_money(min(worth, non_negative(remaining_subtotal)))


def points_earned(net_subtotal, divisor: int = ACCRUAL_DIVISOR, rate: int = ACCRUAL_RATE) -> int:
    """Earned on the post-discount amount before the delivery fee."""
    net = non_negative(net_subtotal)
    return int(net // D(divisor)) * int(rate)


def record_accrual(user_id: int, order_id, order_code: str, earned: int, redeemed: int):
    """One entry per order: delta = earned - redeemed."""
    delta = int(earned) - int(redeemed)
    if redeemed and earned:
        description = f"Order {order_code}: +{earned} earned, -{redeemed} redeemed"
    elif redeemed:
        description = f"Order {order_code}: {redeemed} points redeemed"
    else:
        description = f"Order {order_code}: purchase"
    reason = PURCHASE if delta >= 0 else REDEMPTION

    entry = store.append_ledger_entry(user_id, delta, reason, order_id=order_id, description=description)
    if entry is None:
        user = store.get_user(user_id)
        raise InsufficientPoints(int(redeemed), int(user.loyalty_points or 0) if user else 0)
    return entry


def adjust(user_id: int, delta: int, note: str | None = None):
    """Staff compensating entry; the ledger is never edited in place."""
    try:
        delta = int(delta)
    except (TypeError, ValueError):
        raise InvalidRequest("delta must be an integer.", {"delta": delta})
    if delta == 0:
        raise InvalidRequest("delta must not be zero.")

    entry = store.append_ledger_entry(user_id, delta, ADJUSTMENT, description=note or "Manual adjustment")
    if entry is None:
        user = store.get_user(user_id)
        raise InsufficientPoints(-delta, int(user.loyalty_points or 0) if user else 0)
    logger.info("manual loyalty adjustment user=%s delta=%+d", user_id, delta)
    return entry
