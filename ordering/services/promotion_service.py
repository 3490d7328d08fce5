# ordering/services/promotion_service.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from . import store
from ..errors import (
    CouponExhausted,
    CouponExpired,
    CouponNotFound,
    CouponNotValidToday,
    MinimumPurchaseNotMet,
)
from ..utils.dates import utcnow
from ..utils.money import D, round_money, non_negative, Money

logger = logging.getLogger(__name__)

PERCENTAGE = "percentage"
FIXED_AMOUNT = "fixed_amount"
KINDS = {PERCENTAGE, FIXED_AMOUNT, "coupon"}


def normalize_code(code) -> str:
    return (code or "").strip().upper()


@dataclass(frozen=True)
class PromotionRef:
    id: int
    code: str
    kind: str
    value: Money
    min_purchase: Money = D(0)
    max_discount: Money | None = None
    max_uses: int | None = None
    current_uses: int = 0
    starts_at: datetime | None = None
    ends_at: datetime | None = None
    valid_days: tuple | None = None
    is_active: bool = True

    @classmethod
    def from_model(cls, p):
        return cls(
            id=p.id,
            code=normalize_code(p.coupon_code),
            kind=(p.kind or PERCENTAGE).lower(),
            value=D(p.value),
            min_purchase=D(p.min_purchase),
            max_discount=D(p.max_discount) if p.max_discount is not None else None,
            max_uses=p.max_uses,
            current_uses=int(p.current_uses or 0),
            starts_at=p.starts_at,
            ends_at=p.ends_at,
            valid_days=tuple(p.valid_days) if p.valid_days else None,
            is_active=p.is_active is not False,
        )


class NoPromotion:
    promotion = None
    discount = D(0)

    def __bool__(self):
        return False

    def as_api(self):
        return None


NO_PROMOTION = NoPromotion()


@dataclass(frozen=True)
class AppliedPromotion:
    promotion: PromotionRef
    discount: Money

    def as_api(self):
        return {
            "id": self.promotion.id,
            "code": self.promotion.code,
            "kind": self.promotion.kind,
            "discount": float(self.discount),
        }


def compute_discount(promotion: PromotionRef, subtotal) -> Money:
    subtotal = non_negative(subtotal)
    value = non_negative(promotion.value)
    if promotion.kind == PERCENTAGE:
        if value > 100:
            value = D(100)
        amount = round_money(subtotal * value / D(100))
    else:
        amount = round_money(value)

    if promotion.max_discount is not None:
        amount = min(amount, non_negative(promotion.max_discount))
    # never below zero before the delivery fee
    return round_money(min(amount, subtotal))


def check_promotion(promotion: PromotionRef, subtotal, now: datetime):
    """Checks run in a fixed order; the first failure wins."""
    code = promotion.code
    if not promotion.is_active or (promotion.starts_at and now < promotion.starts_at):
        raise CouponNotFound(code)
    if promotion.ends_at and now > promotion.ends_at:
        raise CouponExpired(code)
    if promotion.valid_days and now.weekday() not in promotion.valid_days:
        raise CouponNotValidToday(code)
    if promotion.max_uses is not None and promotion.current_uses >= promotion.max_uses:
        raise CouponExhausted(code)
    minimum = non_negative(promotion.min_purchase)
    if D(subtotal) < minimum:
        raise MinimumPurchaseNotMet(code, minimum, round_money(minimum - D(subtotal)))


def apply_promotion(code, subtotal, customer=None, now: datetime | None = None):
    """
    Returns NO_PROMOTION for an empty code, otherwise AppliedPromotion.
    Raises a PromotionError subclass when the code cannot be used.
    """
    normalized = normalize_code(code)
    if not normalized:
        return NO_PROMOTION

    now = now or utcnow()
    row = store.find_promotion_by_code(normalized)
    if row is None:
        raise CouponNotFound(normalized)

    promotion = PromotionRef.from_model(row)
    check_promotion(promotion, subtotal, now)
    discount = compute_discount(promotion, subtotal)
    logger.debug(
        "coupon %s ok for customer=%s subtotal=%s discount=%s",
        normalized, getattr(customer, "id", None), subtotal, discount,
    )
    return AppliedPromotion(promotion=promotion, discount=discount)


def redeem_usage(promotion_id: int, subtotal, now: datetime | None = None, max_attempts: int = 3) -> int:
    """
    Optimistic increment of current_uses. On conflict the promotion is re-read
    and re-validated; after max_attempts conflicts the late caller gets
    CouponExhausted. Returns the new usage count.
    """
    now = now or utcnow()
    code = str(promotion_id)
    for attempt in range(1, max(1, max_attempts) + 1):
        row = store.get_promotion(promotion_id)
        if row is None:
            raise CouponNotFound(code)
        promotion = PromotionRef.from_model(row)
        code = promotion.code
        check_promotion(promotion, subtotal, now)

        if store.increment_promotion_usage(promotion.id, promotion.current_uses):
            return promotion.current_uses + 1
        logger.info("usage conflict on coupon %s (attempt %d/%d)", code, attempt, max_attempts)

    raise CouponExhausted(code)
