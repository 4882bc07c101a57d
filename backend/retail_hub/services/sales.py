"""
Sales aggregation over both order sources for day / week / month periods.
"""
from datetime import datetime
from typing import Any, Optional

from sqlalchemy.orm import Session

from retail_hub.errors import InputError
from retail_hub.models import ShopifyOrder, SpyOrder
from retail_hub.utils import PERIODS, period_start, utcnow, isoformat, to_float


def _start_for(period: str, now: datetime) -> datetime:
    if period not in PERIODS:
        raise InputError("Invalid period. Must be day, week, or month")
    return period_start(period, now)


def orders_between(db: Session, start: datetime, end: Optional[datetime] = None) -> tuple[list, list]:
    """Shopify and SpySystem orders with created_at in [start, end], newest first."""
    shop_q = db.query(ShopifyOrder).filter(ShopifyOrder.created_at >= start)
    spy_q = db.query(SpyOrder).filter(SpyOrder.created_at >= start)
    if end is not None:
        shop_q = shop_q.filter(ShopifyOrder.created_at <= end)
        spy_q = spy_q.filter(SpyOrder.created_at <= end)
    shopify = shop_q.order_by(ShopifyOrder.created_at.desc()).all()
    spy = spy_q.order_by(SpyOrder.created_at.desc()).all()
    return shopify, spy


def total(rows: list) -> float:
    return round(sum(to_float(r.total_amount) for r in rows), 2)


def sales_summary(db: Session, period: str = "day", now: Optional[datetime] = None) -> dict[str, Any]:
    """Totals and order counts per source and combined since the period start."""
    now = now or utcnow()
    start = _start_for(period, now)
    shopify, spy = orders_between(db, start)
    shopify_total = total(shopify)
    spy_total = total(spy)
    return {
        "period": period,
        "start_date": isoformat(start),
        "end_date": isoformat(now),
        "shopify": {"total": shopify_total, "order_count": len(shopify)},
        "spy": {"total": spy_total, "order_count": len(spy)},
        "combined": {
            "total": round(shopify_total + spy_total, 2),
            "order_count": len(shopify) + len(spy),
        },
    }


def sales_detail(db: Session, period: str, now: Optional[datetime] = None) -> dict[str, Any]:
    """Per-order rows plus totals; the shape handed to the assistant."""
    now = now or utcnow()
    start = _start_for(period, now)
    shopify, spy = orders_between(db, start)
    return {
        "period": period,
        "start_date": isoformat(start),
        "shopify_orders": [
            {
                "id": o.id,
                "total_amount": to_float(o.total_amount),
                "created_at": isoformat(o.created_at),
                "customer_email": o.customer_email,
            }
            for o in shopify
        ],
        "spy_orders": [
            {
                "order_number": o.order_number,
                "total_amount": to_float(o.total_amount),
                "created_at": isoformat(o.created_at),
            }
            for o in spy
        ],
        "total_shopify": total(shopify),
        "total_spy": total(spy),
    }


def order_status(db: Session, order_ref: str) -> dict[str, Any]:
    """
    Look up an order in both sources. Shopify matches the platform id or the
    order_number / name inside the stored payload; SpySystem matches order_number.
    """
    ref = (order_ref or "").strip().lstrip("#")
    if not ref:
        raise InputError("order_ref is required")

    spy = db.query(SpyOrder).filter(SpyOrder.order_number == ref).first()
    if spy:
        payload = spy.payload or {}
        return {
            "found": True,
            "source": "spy",
            "order_ref": spy.order_number,
            "status": payload.get("status"),
            "total_amount": to_float(spy.total_amount),
            "created_at": isoformat(spy.created_at),
        }

    shop = None
    if ref.isdigit():
        shop = db.get(ShopifyOrder, int(ref))
    if shop is None:
        # order_number lives only in the payload; scan recent rows
        for candidate in db.query(ShopifyOrder).order_by(ShopifyOrder.created_at.desc()).limit(500):
            payload = candidate.payload or {}
            if str(payload.get("order_number", "")) == ref or str(payload.get("name", "")).lstrip("#") == ref:
                shop = candidate
                break
    if shop:
        payload = shop.payload or {}
        return {
            "found": True,
            "source": "shopify",
            "order_ref": str(shop.id),
            "status": shop.status,
            "financial_status": payload.get("financial_status"),
            "total_amount": to_float(shop.total_amount),
            "created_at": isoformat(shop.created_at),
        }
    return {"found": False, "order_ref": ref}
