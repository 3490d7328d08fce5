# ordering/model/loyalty.py
from datetime import datetime, timezone

from ..extensions import db


def _utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class LedgerEntry(db.Model):
    """Append-only; corrections are new rows with reason='adjustment'."""
    __tablename__ = "loyalty_ledger"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("user.id"), nullable=False, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)

    delta = db.Column(db.Integer, nullable=False)
    reason = db.Column(db.String(20), nullable=False)      # purchase | redemption | adjustment
    description = db.Column(db.String(255))
    balance_after = db.Column(db.Integer, nullable=False)
    created_at = db.Column(db.DateTime, default=_utcnow, index=True)

    def as_api(self):
        return {
            "id": self.id,
            "order_id": self.order_id,
            "delta": self.delta,
            "reason": self.reason,
            "description": self.description,
            "balance_after": self.balance_after,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
