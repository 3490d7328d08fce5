import sys

import pandas as pd
from sqlalchemy import func

from ordering import create_app
from ordering.extensions import db
from ordering.model import LedgerEntry, Order, Promotion


def order_rows(orders):
    return [
        {
            "ID": o.id,
            "Code": o.code,
            "Status": o.status,
            "Created At": o.created_at,
            "Customer ID": o.customer_id,
            "Customer Email": o.customer_email,
            "Delivery Type": o.delivery_type,
            "Distance (km)": o.delivery_distance_km,
            "Free Delivery": bool(o.is_free_delivery),
            "Subtotal": float(o.subtotal or 0),
            "Promotion Discount": float(o.promotion_discount or 0),
            "Points Discount": float(o.points_discount or 0),
            "Delivery Fee": float(o.delivery_fee or 0),
            "Total": float(o.total or 0),
            "Points Used": o.points_used,
            "Points Earned": o.points_earned,
            "Coupon": o.promotion_code,
        }
        for o in orders
    ]


def promotion_usage_rows():
    """current_uses on the promotion vs. committed orders that used it."""
    counts = dict(
        db.session.query(Order.promotion_id, func.count(Order.id))
        .filter(Order.promotion_id.isnot(None))
        .group_by(Order.promotion_id)
        .all()
    )
    rows = []
    for p in Promotion.query.order_by(Promotion.id).all():
        used = counts.get(p.id, 0)
        rows.append({
            "Promotion ID": p.id,
            "Coupon": p.coupon_code,
            "Max Uses": p.max_uses,
            "Current Uses": p.current_uses,
            "Orders Using It": used,
            "Difference": used - (p.current_uses or 0),
            "Over Limit": p.max_uses is not None and used > p.max_uses,
        })
    return rows


def missing_ledger_rows():
    """Orders that should have a ledger entry but have none."""
    with_entry = db.session.query(LedgerEntry.order_id).filter(LedgerEntry.order_id.isnot(None))
    q = (Order.query
         .filter(Order.customer_id.isnot(None))
         .filter((Order.points_earned > 0) | (Order.points_used > 0))
         .filter(Order.id.notin_(with_entry))
         .order_by(Order.id))
    return [
        {
            "Order ID": o.id,
            "Code": o.code,
            "Customer ID": o.customer_id,
            "Points Earned": o.points_earned,
            "Points Used": o.points_used,
            "Expected Delta": (o.points_earned or 0) - (o.points_used or 0),
        }
        for o in q.all()
    ]


def export(path):
    with pd.ExcelWriter(path) as writer:
        pd.DataFrame(order_rows(Order.query.order_by(Order.id).all())).to_excel(writer, sheet_name="Orders", index=False)
        pd.DataFrame(promotion_usage_rows()).to_excel(writer, sheet_name="Promotion Usage", index=False)
        pd.DataFrame(missing_ledger_rows()).to_excel(writer, sheet_name="Missing Ledger", index=False)


if __name__ == "__main__":
    app = create_app()
    excel_file_path = sys.argv[1] if len(sys.argv) > 1 else "orders_export.xlsx"
    with app.app_context():
        export(excel_file_path)
    print(f"Orders have been exported to Excel at {excel_file_path}")
