# ordering/model/delivery.py
from datetime import datetime, timezone

from ..extensions import db


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class DeliveryConfig(db.Model):
    """Single-row table; the newest row wins if more exist."""
    __tablename__ = "delivery_config"

    id = db.Column(db.Integer, primary_key=True)
    store_name = db.Column(db.String(120))
    store_latitude = db.Column(db.Float, nullable=False)
    store_longitude = db.Column(db.Float, nullable=False)

    # [{"max_km": 3, "fee": 1500}, ...] ascending by max_km
    tiers = db.Column(db.JSON, nullable=False)
    free_delivery_enabled = db.Column(db.Boolean, default=True)
    free_delivery_threshold = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    max_delivery_distance_km = db.Column(db.Float, nullable=False)

    updated_at = db.Column(db.DateTime, default=_utcnow, onupdate=_utcnow)
    updated_by = db.Column(db.Integer, nullable=True)

    def as_api(self):
        return {
            "id": self.id,
            "store_name": self.store_name,
            "store_latitude": self.store_latitude,
            "store_longitude": self.store_longitude,
            "tiers": self.tiers,
            "free_delivery_enabled": self.free_delivery_enabled,
            "free_delivery_threshold": float(self.free_delivery_threshold or 0),
            "max_delivery_distance_km": self.max_delivery_distance_km,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
            "updated_by": self.updated_by,
        }
