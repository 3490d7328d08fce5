# --- ordering/model/user.py ---

from ..extensions import db


class User(db.Model):
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=True)
    password_hash = db.Column(db.String(255), nullable=False, default="")
    role = db.Column(db.String(50), nullable=False, default="customer", index=True)  # customer, employee, delivery, admin

    # balance only ever changes together with a LedgerEntry row
    loyalty_points = db.Column(db.Integer, nullable=False, default=0)

    def as_dict(self):
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "phone": self.phone,
            "role": self.role,
            "loyalty_points": int(self.loyalty_points or 0),
        }
