from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import Session

from .models import Order, OrderStatus, PaymentStatus, Product, utcnow


def _month_key(moment):
    return moment.year, moment.month


def summary(db: Session, now=None) -> dict:
    """Admin dashboard figures: revenue, order counts, product count and a 12 month trend."""
    now = now or utcnow()

    revenue = (
        db.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.payment_status == PaymentStatus.PAID.value)
        .scalar()
    )

    total_orders = db.query(func.count(Order.id)).scalar()
    pending_orders = db.query(func.count(Order.id)).filter(Order.status == OrderStatus.PENDING.value).scalar()
    delivered_orders = (
        db.query(func.count(Order.id))
        .filter(Order.status.in_([OrderStatus.SHIPPED.value, OrderStatus.DELIVERED.value]))
        .scalar()
    )

    products_count = db.query(func.count(Product.id)).filter(Product.status == "Active").scalar()

    # Bucketed in Python so the same code runs on SQLite and PostgreSQL.
    since = now - timedelta(days=365)
    recent = (
        db.query(Order.created_at, Order.total_amount, Order.payment_status)
        .filter(Order.created_at >= since)
        .order_by(Order.created_at)
        .all()
    )
    revenue_by_month = {}
    orders_by_month = {}
    for created_at, total_amount, payment_status in recent:
        key = _month_key(created_at)
        orders_by_month[key] = orders_by_month.get(key, 0) + 1
        if payment_status == PaymentStatus.PAID.value:
            revenue_by_month[key] = revenue_by_month.get(key, Decimal("0")) + Decimal(str(total_amount or 0))

    def label(key):
        return date(key[0], key[1], 1).strftime("%b %Y")

    return {
        "revenue": Decimal(str(revenue or 0)),
        "ordersCount": {
            "total": total_orders or 0,
            "pending": pending_orders or 0,
            "delivered": delivered_orders or 0,
        },
        "productsCount": products_count or 0,
        "monthlyRevenue": [
            {"month": label(key), "revenue": value} for key, value in sorted(revenue_by_month.items())
        ],
        "monthlyOrders": [
            {"month": label(key), "orders": value} for key, value in sorted(orders_by_month.items())
        ],
    }
