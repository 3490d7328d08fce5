# ordering/model/product.py
from ..extensions import db
from sqlalchemy.sql import func


class Product(db.Model):
    __tablename__ = "product"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    category = db.Column(db.String(120), index=True)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)

    available = db.Column(db.Boolean, default=True)
    stock_quantity = db.Column(db.Integer, nullable=True)   # NULL or 999 = not tracked

    created_at = db.Column(db.DateTime, server_default=func.now())
    updated_at = db.Column(db.DateTime, onupdate=func.now(), server_default=func.now())

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "price": float(self.price or 0),
            "available": self.available,
            "stock_quantity": self.stock_quantity,
        }


class Ingredient(db.Model):
    __tablename__ = "ingredient"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, unique=True)
    extra_price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    available = db.Column(db.Boolean, default=True)

    def as_api(self):
        return {
            "id": self.id,
            "name": self.name,
            "extra_price": float(self.extra_price or 0),
            "available": self.available,
        }
