import json
import os
from datetime import timedelta


def _env_float(name, default):
    try:
        return float(os.getenv(name, default))
    except (TypeError, ValueError):
        return float(default)


def _env_int(name, default):
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return int(default)


def _env_bool(name, default):
    v = os.getenv(name)
    if v is None:
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}


DEFAULT_DELIVERY_TIERS = [
    {"max_km": 3, "fee": 1500},
    {"max_km": 6, "fee": 2500},
    {"max_km": 10, "fee": 3500},
]


class Config:
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    JWT_SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "dev-secret-change-me")
    JWT_ACCESS_TOKEN_EXPIRES = timedelta(days=1)

    # Delivery defaults; the delivery_config row overrides these once saved
    STORE_LATITUDE = _env_float("STORE_LATITUDE", -33.4489)
    STORE_LONGITUDE = _env_float("STORE_LONGITUDE", -70.6693)
    DELIVERY_TIERS = json.loads(os.getenv("DELIVERY_TIERS", "null")) or DEFAULT_DELIVERY_TIERS
    FREE_DELIVERY_ENABLED = _env_bool("FREE_DELIVERY_ENABLED", True)
    FREE_DELIVERY_THRESHOLD = _env_float("FREE_DELIVERY_THRESHOLD", 15000)
    MAX_DELIVERY_DISTANCE_KM = _env_float("MAX_DELIVERY_DISTANCE_KM", 10)

    # Loyalty: 100 currency units per redeemed point, 5 points per 1000 spent
    LOYALTY_POINT_VALUE = _env_int("LOYALTY_POINT_VALUE", 100)
    LOYALTY_ACCRUAL_DIVISOR = _env_int("LOYALTY_ACCRUAL_DIVISOR", 1000)
    LOYALTY_ACCRUAL_RATE = _env_int("LOYALTY_ACCRUAL_RATE", 5)

    PROMOTION_REDEEM_ATTEMPTS = _env_int("PROMOTION_REDEEM_ATTEMPTS", 3)
    ORDER_COMMIT_RETRIES = _env_int("ORDER_COMMIT_RETRIES", 3)
    ORDER_COMMIT_BACKOFF = _env_float("ORDER_COMMIT_BACKOFF", 0.2)
    SIDE_EFFECT_RETRIES = _env_int("SIDE_EFFECT_RETRIES", 3)

    GEOCODER_ENABLED = _env_bool("GEOCODER_ENABLED", True)
    GEOCODER_URL = os.getenv("GEOCODER_URL", "https://nominatim.openstreetmap.org/reverse")
    GEOCODER_TIMEOUT = _env_float("GEOCODER_TIMEOUT", 3.0)
    GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "ordering-api/1.0")

    @staticmethod
    def init_app(app):
        if not os.getenv("DATABASE_URL"):
            os.makedirs(app.instance_path, exist_ok=True)
            app.config["SQLALCHEMY_DATABASE_URI"] = f"sqlite:///{os.path.join(app.instance_path, 'app.db')}"
        else:
            app.config["SQLALCHEMY_DATABASE_URI"] = os.getenv("DATABASE_URL")
