# ordering/services/order_service.py
"""
Checkout: Draft -> Validated -> Priced -> Committed, or Rejected.

Every number on the order is derived here from catalog rows, the promotion
row, the customer's balance and the delivery config. Totals sent by the client
are never read. After the order is committed the promotion usage increment
and the loyalty ledger entry run as separate, best-effort steps; if one of
them fails the order stands and the failure is logged for reconciliation.
"""
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from . import store
from .cart_service import CartSummary, aggregate, resolve_lines
from .delivery_service import (
    DELIVERY,
    DELIVERY_TYPES,
    PICKUP,
    Coordinates,
    DeliveryQuote,
    load_settings,
    quote_for,
)
from .geocoding import reverse_geocode
from .loyalty_service import parse_points, points_discount, points_earned, record_accrual
from .promotion_service import NO_PROMOTION, apply_promotion, redeem_usage
from ..errors import (
    CheckoutError,
    InsufficientPoints,
    InvalidRequest,
    MissingCoordinates,
    PersistenceError,
    PromotionError,
    SideEffectFailure,
)
from ..model import Order, OrderItem
from ..utils.dates import utcnow
from ..utils.money import round_money, non_negative, to_api, Money
from ..utils.retry import call_with_retries

logger = logging.getLogger(__name__)

# keys a client may send for display purposes; they are never used for pricing
CLIENT_COMPUTED_FIELDS = (
    "subtotal", "discount", "promotion_discount", "points_discount", "delivery_fee", "total",
)


class CheckoutState(Enum):
    DRAFT = "draft"
    VALIDATED = "validated"
    PRICED = "priced"
    COMMITTED = "committed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class CheckoutRequest:
    lines: list
    coupon_code: str = ""
    points_requested: int = 0
    delivery_type: str = PICKUP
    coordinates: Coordinates | None = None
    customer_phone: str | None = None
    notes: str | None = None

    @classmethod
    def from_payload(cls, data):
        if not isinstance(data, dict):
            raise InvalidRequest("request body must be a JSON object.")

        ignored = [k for k in CLIENT_COMPUTED_FIELDS if k in data]
        if ignored:
            logger.debug("ignoring client-computed fields %s", ignored)

        delivery_type = str(data.get("delivery_type") or "").strip().lower()
        if delivery_type not in DELIVERY_TYPES:
            raise InvalidRequest(
                "delivery_type must be 'delivery' or 'pickup'.", {"delivery_type": data.get("delivery_type")}
            )

        coords = None
        if delivery_type == DELIVERY:
            coords = Coordinates.parse(data.get("delivery_coordinates") or data.get("coordinates"))
            if coords is None:
                raise MissingCoordinates()

        lines = data.get("lines", data.get("items"))
        if lines is None:
            lines = []

        return cls(
            lines=lines,
            coupon_code=str(data.get("coupon_code") or ""),
            points_requested=parse_points(data.get("points_requested", data.get("points"))),
            delivery_type=delivery_type,
            coordinates=coords,
            customer_phone=(data.get("customer_phone") or data.get("phone") or None),
            notes=(str(data.get("notes")).strip()[:500] if data.get("notes") else None),
        )


@dataclass(frozen=True)
class PricedOrder:
    summary: CartSummary
    promotion: object
    points_redeemed: int
    points_discount: Money
    delivery: DeliveryQuote
    points_earned: int
    priced_at: datetime

    @property
    def subtotal(self) -> Money:
        return self.summary.subtotal

    @property
    def promotion_discount(self) -> Money:
        return self.promotion.discount

    @property
    def discount(self) -> Money:
        return round_money(self.promotion_discount + self.points_discount)

    @property
    def net_subtotal(self) -> Money:
        return round_money(non_negative(self.subtotal - self.promotion_discount - self.points_discount))

    @property
    def total(self) -> Money:
        return round_money(self.net_subtotal + self.delivery.fee)

    def as_api(self):
        return {
            "lines": [
                {**line.snapshot(), "unit_price": to_api(line.product.price),
                 "extras_unit_price": to_api(line.extras_unit_price()),
                 "line_total": to_api(line.line_total())}
                for line in self.summary.lines
            ],
            "subtotal": to_api(self.subtotal),
            "promotion": self.promotion.as_api(),
            "promotion_discount": to_api(self.promotion_discount),
            "points_redeemed": self.points_redeemed,
            "points_discount": to_api(self.points_discount),
            "discount": to_api(self.discount),
            "net_subtotal": to_api(self.net_subtotal),
            "delivery": self.delivery.as_api(),
            "delivery_fee": to_api(self.delivery.fee),
            "total": to_api(self.total),
            "points_earned": self.points_earned,
        }


@dataclass
class CheckoutResult:
    order: Order
    side_effect_failures: list = field(default_factory=list)


def _gen_order_code():
    return "ORD-" + utcnow().strftime("%Y%m%d-%H%M%S%f") + "-" + secrets.token_hex(2).upper()


class OrderAssembler:
    """One instance per checkout attempt."""

    def __init__(self, config=None, geocoder=None):
        self.config = config if config is not None else current_app.config
        self.geocoder = geocoder or reverse_geocode
        self.state = CheckoutState.DRAFT
        self.rejection: CheckoutError | None = None

    # ---- state handling -----------------------------------------------------

    def _advance(self, state: CheckoutState):
        logger.info("checkout %s -> %s", self.state.value, state.value)
        self.state = state

    def _reject(self, error: CheckoutError):
        self.state = CheckoutState.REJECTED
        self.rejection = error
        logger.warning("checkout rejected (%s): %s", error.code, error.message)

    def _cfg(self, name, default):
        return self.config.get(name, default)

    # ---- public API ---------------------------------------------------------

    def quote(self, request: CheckoutRequest, customer) -> PricedOrder:
        """Draft -> Priced without persisting anything."""
        try:
            summary = self._validate(request)
            return self._price(request, customer, summary)
        except CheckoutError as e:
            self._reject(e)
            raise

    def checkout(self, request: CheckoutRequest, customer) -> CheckoutResult:
        priced = self.quote(request, customer)
        try:
            order = self._commit(request, customer, priced)
        except CheckoutError as e:
            self._reject(e)
            raise
        failures = self._apply_side_effects(order, customer, priced)
        return CheckoutResult(order=order, side_effect_failures=failures)

    # ---- steps --------------------------------------------------------------

    def _validate(self, request: CheckoutRequest) -> CartSummary:
        summary = aggregate(resolve_lines(request.lines))
        self._advance(CheckoutState.VALIDATED)
        return summary

    def _price(self, request: CheckoutRequest, customer, summary: CartSummary) -> PricedOrder:
        now = utcnow()
        promotion = apply_promotion(request.coupon_code, summary.subtotal, customer, now=now)

        balance = customer.loyalty_balance if customer else 0
        after_promotion = non_negative(summary.subtotal - promotion.discount)
        pts_discount = points_discount(
            request.points_requested, balance, after_promotion,
            point_value=self._cfg("LOYALTY_POINT_VALUE", 100),
        )
        net = round_money(non_negative(after_promotion - pts_discount))

        settings = load_settings(self.config) if request.delivery_type == DELIVERY else None
        delivery = quote_for(request.delivery_type, request.coordinates, settings, net)

        earned = points_earned(
            net,
            divisor=self._cfg("LOYALTY_ACCRUAL_DIVISOR", 1000),
            rate=self._cfg("LOYALTY_ACCRUAL_RATE", 5),
        ) if customer and customer.id else 0

        priced = PricedOrder(
            summary=summary,
            promotion=promotion,
            points_redeemed=request.points_requested,
            points_discount=pts_discount,
            delivery=delivery,
            points_earned=earned,
            priced_at=now,
        )
        self._advance(CheckoutState.PRICED)
        logger.info(
            "priced checkout subtotal=%s promo=%s points=%s fee=%s total=%s",
            priced.subtotal, priced.promotion_discount, priced.points_discount,
            priced.delivery.fee, priced.total,
        )
        return priced

    def _build_order(self, request: CheckoutRequest, customer, priced: PricedOrder, address) -> Order:
        promo = priced.promotion.promotion
        coords = request.coordinates
        order = Order(
            code=_gen_order_code(),
            status="received",
            customer_id=customer.id if customer else None,
            customer_name=customer.name if customer else None,
            customer_email=customer.email if customer else None,
            customer_phone=request.customer_phone or (customer.phone if customer else None),
            delivery_type=request.delivery_type,
            delivery_address=address,
            delivery_latitude=coords.lat if coords else None,
            delivery_longitude=coords.lng if coords else None,
            delivery_distance_km=round(priced.delivery.distance_km, 2),
            is_free_delivery=priced.delivery.is_free,
            subtotal=priced.subtotal,
            promotion_discount=priced.promotion_discount,
            points_discount=priced.points_discount,
            delivery_fee=priced.delivery.fee,
            total=priced.total,
            points_used=priced.points_redeemed,
            points_earned=priced.points_earned,
            promotion_id=promo.id if promo else None,
            promotion_code=promo.code if promo else None,
            notes=request.notes,
            created_at=priced.priced_at,
        )
        for line in priced.summary.lines:
            order.items.append(OrderItem(**line.snapshot()))
        return order

    def _commit(self, request: CheckoutRequest, customer, priced: PricedOrder) -> Order:
        address = None
        if request.delivery_type == DELIVERY:
            address = self.geocoder(request.coordinates.lat, request.coordinates.lng)

        def attempt():
            return store.insert_order(self._build_order(request, customer, priced, address))

        try:
            order = call_with_retries(
                attempt,
                attempts=self._cfg("ORDER_COMMIT_RETRIES", 3),
                backoff=self._cfg("ORDER_COMMIT_BACKOFF", 0.2),
                retry_on=(SQLAlchemyError,),
                label="order commit",
            )
        except SQLAlchemyError as e:
            logger.error("order commit failed: %s", e)
            raise PersistenceError() from e

        self._advance(CheckoutState.COMMITTED)
        logger.info("committed order %s total=%s", order.code, order.total)
        return order

    def _side_effect_failed(self, effect, order, error, context) -> SideEffectFailure:
        failure = SideEffectFailure(effect=effect, order_code=order.code, error=str(error), context=context)
        logger.error(
            "RECONCILE %s for order %s failed: %s %s", effect, order.code, error, context,
        )
        return failure

    def _apply_side_effects(self, order: Order, customer, priced: PricedOrder) -> list:
        failures = []
        retries = self._cfg("SIDE_EFFECT_RETRIES", 3)
        order_id, order_code = order.id, order.code

        if priced.promotion is not NO_PROMOTION:
            promo = priced.promotion.promotion
            try:
                call_with_retries(
                    lambda: redeem_usage(
                        promo.id, priced.subtotal, now=priced.priced_at,
                        max_attempts=self._cfg("PROMOTION_REDEEM_ATTEMPTS", 3),
                    ),
                    attempts=retries,
                    retry_on=(SQLAlchemyError,),
                    label=f"promotion usage {promo.code}",
                )
            except (PromotionError, SQLAlchemyError) as e:
                failures.append(self._side_effect_failed(
                    "promotion_usage", order, e, {"promotion_id": promo.id, "coupon_code": promo.code},
                ))

        if customer and customer.id and (priced.points_earned or priced.points_redeemed):
            try:
                call_with_retries(
                    lambda: record_accrual(
                        customer.id, order_id, order_code, priced.points_earned, priced.points_redeemed,
                    ),
                    attempts=retries,
                    retry_on=(SQLAlchemyError,),
                    label=f"loyalty entry {order_code}",
                )
            except (InsufficientPoints, SQLAlchemyError) as e:
                failures.append(self._side_effect_failed(
                    "loyalty_entry", order, e,
                    {"user_id": customer.id, "earned": priced.points_earned, "redeemed": priced.points_redeemed},
                ))

        return failures
