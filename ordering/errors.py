# --- ordering/errors.py ---
"""
Checkout failure taxonomy.

Every customer-facing error carries one specific message. Handlers turn them
into the standard API envelope (see utils/api.py) with a machine-readable
``error`` code inside ``data``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation

from flask import jsonify

from .utils.api import api_error


class CheckoutError(Exception):
    status_code = 400
    code = "checkout_error"

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(message)
        self.message = message
        self.data = data or {}

    def payload(self) -> dict:
        return {"error": self.code, **self.data}


# ---- validation (fixable by the customer, never retried) -------------------

class ValidationError(CheckoutError):
    status_code = 422
    code = "validation_error"


class InvalidRequest(ValidationError):
    code = "invalid_request"


class EmptyCart(ValidationError):
    code = "empty_cart"

    def __init__(self):
        super().__init__("Your cart is empty. Add at least one product to place an order.")


class InvalidQuantity(ValidationError):
    code = "invalid_quantity"

    def __init__(self, product_name: str, quantity):
        super().__init__(
            f"Quantity for {product_name} must be a whole number of at least 1.",
            {"product": product_name, "quantity": quantity},
        )


class ProductNotFound(ValidationError):
    status_code = 404
    code = "product_not_found"

    def __init__(self, product_id):
        super().__init__(f"Product {product_id} does not exist.", {"product_id": product_id})


class ProductUnavailable(ValidationError):
    status_code = 409
    code = "product_unavailable"

    def __init__(self, product_name: str, reason: str = "is not available right now"):
        super().__init__(f'"{product_name}" {reason}.', {"product": product_name})
        self.product_name = product_name


class IngredientUnavailable(ValidationError):
    status_code = 409
    code = "ingredient_unavailable"

    def __init__(self, ingredient_ref):
        super().__init__(
            f"Extra ingredient {ingredient_ref} is not available.",
            {"ingredient": ingredient_ref},
        )


class MissingCoordinates(ValidationError):
    code = "missing_coordinates"

    def __init__(self):
        super().__init__("Delivery orders need a valid delivery location (lat, lng).")


# ---- promotions -------------------------------------------------------------

class PromotionError(CheckoutError):
    status_code = 422
    code = "promotion_error"


class CouponNotFound(PromotionError):
    status_code = 404
    code = "coupon_not_found"

    def __init__(self, coupon_code: str):
        super().__init__(f'Coupon "{coupon_code}" is not valid.', {"coupon_code": coupon_code})


class CouponExpired(PromotionError):
    code = "coupon_expired"

    def __init__(self, coupon_code: str):
        super().__init__(f'Coupon "{coupon_code}" has expired.', {"coupon_code": coupon_code})


class CouponNotValidToday(PromotionError):
    code = "coupon_not_valid_today"

    def __init__(self, coupon_code: str):
        super().__init__(f'Coupon "{coupon_code}" cannot be used today.', {"coupon_code": coupon_code})


class CouponExhausted(PromotionError):
    code = "coupon_exhausted"

    def __init__(self, coupon_code: str):
        super().__init__(
            f'Coupon "{coupon_code}" has reached its usage limit.', {"coupon_code": coupon_code}
        )


class MinimumPurchaseNotMet(PromotionError):
    code = "minimum_purchase_not_met"

    def __init__(self, coupon_code: str, minimum: Decimal, shortfall: Decimal):
        super().__init__(
            f'Coupon "{coupon_code}" needs a minimum purchase of {minimum:,.0f}; '
            f"add {shortfall:,.0f} more to use it.",
            {"coupon_code": coupon_code, "minimum": float(minimum), "shortfall": float(shortfall)},
        )
        self.shortfall = shortfall


# ---- loyalty / delivery / persistence --------------------------------------

class InsufficientPoints(CheckoutError):
    status_code = 422
    code = "insufficient_points"

    def __init__(self, requested: int, available: int):
        super().__init__(
            f"You asked to redeem {requested} points but only have {available}.",
            {"requested": requested, "available": available},
        )


class OutOfServiceArea(CheckoutError):
    status_code = 422
    code = "out_of_service_area"

    def __init__(self, distance_km: float, max_km: float):
        super().__init__(
            f"We do not deliver farther than {max_km:g} km (you are {distance_km:.1f} km away). "
            "You can still order for pickup.",
            {"distance_km": round(distance_km, 2), "max_km": max_km, "suggestion": "pickup"},
        )
        self.distance_km = distance_km


class PersistenceError(CheckoutError):
    status_code = 503
    code = "persistence_error"

    def __init__(self, message: str = "We could not save your order. Please try again in a moment."):
        super().__init__(message)


@dataclass
class SideEffectFailure:
    """Post-commit bookkeeping that did not apply; needs manual reconciliation."""

    effect: str
    order_code: str
    error: str
    context: dict = field(default_factory=dict)

    def as_api(self):
        return {"effect": self.effect, "order_code": self.order_code, "error": self.error, **self.context}


def register_error_handlers(app):
    @app.errorhandler(CheckoutError)
    def handle_checkout_error(e):
        r = jsonify(api_error(e.message, e.payload()))
        r.status_code = e.status_code
        return r

    @app.errorhandler(ValueError)
    def handle_value_error(e):
        r = jsonify(api_error(str(e), {"error": "invalid_value"}))
        r.status_code = 422
        return r

    @app.errorhandler(InvalidOperation)
    def handle_bad_number(e):
        r = jsonify(api_error("Invalid number", {"error": "invalid_value"}))
        r.status_code = 422
        return r
