# --- ordering/model/promotion.py ---

from ..extensions import db
from sqlalchemy.sql import func


class Promotion(db.Model):
    __tablename__ = "promotion"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.String(255))
    # stored upper-case; lookups normalize the same way
    coupon_code = db.Column(db.String(64), unique=True, nullable=False, index=True)

    # "percentage" | "fixed_amount" ("coupon" is priced as fixed_amount)
    kind = db.Column(db.String(16), nullable=False, default="percentage")
    value = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    min_purchase = db.Column(db.Numeric(12, 2), nullable=True)
    max_discount = db.Column(db.Numeric(12, 2), nullable=True)
    max_uses = db.Column(db.Integer, nullable=True)          # NULL = unlimited
    current_uses = db.Column(db.Integer, nullable=False, default=0)

    starts_at = db.Column(db.DateTime, nullable=True)
    ends_at = db.Column(db.DateTime, nullable=True)
    valid_days = db.Column(db.JSON, nullable=True)           # [0..6], 0 = Monday
    is_active = db.Column(db.Boolean, default=True, index=True)

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "coupon_code": self.coupon_code,
            "kind": self.kind,
            "value": float(self.value or 0),
            "min_purchase": float(self.min_purchase) if self.min_purchase is not None else None,
            "max_discount": float(self.max_discount) if self.max_discount is not None else None,
            "max_uses": self.max_uses,
            "current_uses": self.current_uses,
            "starts_at": self.starts_at.isoformat() if self.starts_at else None,
            "ends_at": self.ends_at.isoformat() if self.ends_at else None,
            "valid_days": self.valid_days,
            "is_active": self.is_active,
        }
