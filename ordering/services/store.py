# ordering/services/store.py
"""
Durable store used by the checkout engine.

Everything the pricing code reads or writes in the database goes through
here, so the engine modules stay plain functions over dataclasses.
"""
import logging

from sqlalchemy import func, or_, update
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..model import DeliveryConfig, Ingredient, LedgerEntry, Order, Product, Promotion, User

logger = logging.getLogger(__name__)


# ---- catalog reads ----------------------------------------------------------

def products_by_id(ids):
    ids = set(ids)
    if not ids:
        return {}
    rows = db.session.query(Product).filter(Product.id.in_(ids)).all()
    return {p.id: p for p in rows}


def ingredients_by_id(ids):
    ids = set(ids)
    if not ids:
        return {}
    rows = db.session.query(Ingredient).filter(Ingredient.id.in_(ids)).all()
    return {i.id: i for i in rows}


def find_promotion_by_code(code: str):
    return (
        db.session.query(Promotion)
        .filter(func.upper(Promotion.coupon_code) == code)
        .first()
    )


def get_promotion(promotion_id: int):
    # populate_existing: never reuse a stale identity-map copy when re-validating
    return db.session.get(Promotion, promotion_id, populate_existing=True)


def current_delivery_config():
    return db.session.query(DeliveryConfig).order_by(DeliveryConfig.id.desc()).first()


def get_user(user_id: int):
    return db.session.get(User, user_id, populate_existing=True)


# ---- writes -----------------------------------------------------------------

def insert_order(order: Order) -> Order:
    """Order and its items land in one commit or not at all."""
    try:
        db.session.add(order)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return order


def increment_promotion_usage(promotion_id: int, seen_uses: int) -> bool:
    """
    Conditional increment: only applies if nobody else redeemed since seen_uses
    was read and the limit still has room. False means "re-read and retry".
    """
    stmt = (
        update(Promotion)
        .where(
            Promotion.id == promotion_id,
            Promotion.current_uses == seen_uses,
            or_(Promotion.max_uses.is_(None), Promotion.current_uses < Promotion.max_uses),
        )
        .values(current_uses=Promotion.current_uses + 1)
        .execution_options(synchronize_session=False)
    )
    try:
        applied = db.session.execute(stmt).rowcount == 1
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    return applied


def append_ledger_entry(user_id: int, delta: int, reason: str, *, order_id=None, description=None):
    """
    Applies delta to the balance and records the entry in one commit.
    Returns the LedgerEntry, or None if the balance would go negative.
    """
    stmt = (
        update(User)
        .where(User.id == user_id, User.loyalty_points + delta >= 0)
        .values(loyalty_points=User.loyalty_points + delta)
        .execution_options(synchronize_session=False)
    )
    try:
        result = db.session.execute(stmt)
        if result.rowcount != 1:
            db.session.rollback()
            return None
        balance = db.session.query(User.loyalty_points).filter(User.id == user_id).scalar()
        entry = LedgerEntry(
            user_id=user_id,
            order_id=order_id,
            delta=delta,
            reason=reason,
            description=description,
            balance_after=int(balance),
        )
        db.session.add(entry)
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        raise
    logger.info("ledger user=%s delta=%+d reason=%s balance=%s", user_id, delta, reason, entry.balance_after)
    return entry
