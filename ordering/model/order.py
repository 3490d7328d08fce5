from datetime import datetime, timezone
from ..extensions import db


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class Order(db.Model):
    """Written once at checkout; never edited in place."""
    __tablename__ = "orders"

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(40), unique=True, index=True)  # e.g., "ORD-20251022-101530123456-3F2A"
    status = db.Column(db.String(20), default="received", index=True)

    # Customer snapshot
    customer_id = db.Column(db.Integer, index=True)
    customer_name = db.Column(db.String(180))
    customer_phone = db.Column(db.String(50))
    customer_email = db.Column(db.String(255), index=True)

    # Delivery snapshot
    delivery_type = db.Column(db.String(16), nullable=False)   # delivery | pickup
    delivery_address = db.Column(db.String(512))
    delivery_latitude = db.Column(db.Float)
    delivery_longitude = db.Column(db.Float)
    delivery_distance_km = db.Column(db.Float, default=0)
    is_free_delivery = db.Column(db.Boolean, default=False)

    # Money snapshot
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    promotion_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    points_discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    delivery_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    points_used = db.Column(db.Integer, nullable=False, default=0)
    points_earned = db.Column(db.Integer, nullable=False, default=0)

    # Link back for audit (not a FK constraint)
    promotion_id = db.Column(db.Integer, index=True)
    promotion_code = db.Column(db.String(64))

    notes = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="joined",
        order_by="OrderItem.id.asc()",
    )

    @property
    def discount(self):
        return (self.promotion_discount or 0) + (self.points_discount or 0)

    def as_api(self):
        return {
            "id": self.id,
            "code": self.code,
            "status": self.status,
            "customer": {
                "id": self.customer_id,
                "name": self.customer_name,
                "phone": self.customer_phone,
                "email": self.customer_email,
            },
            "delivery": {
                "type": self.delivery_type,
                "address": self.delivery_address,
                "latitude": self.delivery_latitude,
                "longitude": self.delivery_longitude,
                "distance_km": self.delivery_distance_km,
                "is_free": bool(self.is_free_delivery),
            },
            "money": {
                "subtotal": float(self.subtotal or 0),
                "promotion_discount": float(self.promotion_discount or 0),
                "points_discount": float(self.points_discount or 0),
                "discount": float(self.discount),
                "delivery_fee": float(self.delivery_fee or 0),
                "total": float(self.total or 0),
            },
            "points": {"used": self.points_used, "earned": self.points_earned},
            "promotion": {"id": self.promotion_id, "code": self.promotion_code} if self.promotion_id else None,
            "items": [i.as_api() for i in self.items],
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    product_id = db.Column(db.Integer, index=True)
    product_name = db.Column(db.String(255))       # name and price as they were at order time
    unit_price = db.Column(db.Numeric(12, 2))

    added_ingredients = db.Column(db.JSON)         # [{"id", "name", "price"}]
    removed_ingredients = db.Column(db.JSON)       # ["onion", ...]
    special_instructions = db.Column(db.String(500))
    extras_unit_price = db.Column(db.Numeric(12, 2), default=0)

    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Numeric(12, 2))

    def as_api(self):
        return {
            "product_id": self.product_id,
            "name": self.product_name,
            "unit_price": float(self.unit_price or 0),
            "added_ingredients": self.added_ingredients or [],
            "removed_ingredients": self.removed_ingredients or [],
            "special_instructions": self.special_instructions,
            "extras_unit_price": float(self.extras_unit_price or 0),
            "quantity": self.quantity,
            "line_total": float(self.line_total or 0),
        }
