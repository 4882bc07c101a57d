"""
Inventory views over append-only snapshots: latest reading per product,
lowest-stock ranking, low-stock alerts and fuzzy product search.
"""
import logging
from datetime import datetime
from typing import Any, Optional

from rapidfuzz import fuzz, process as rf_process
from sqlalchemy import func
from sqlalchemy.orm import Session

from retail_hub.models import Product, InventorySnapshot
from retail_hub.services.notifications import notify
from retail_hub.utils import utcnow, isoformat

logger = logging.getLogger(__name__)

TOP_N_DEFAULT = 20
SEARCH_MATCH_THRESHOLD = 60


def is_low_stock(stock_level: int, min_stock: Optional[int]) -> bool:
    """Low-stock iff stock is strictly below the minimum; equality is not low."""
    return stock_level < (min_stock or 0)


def latest_snapshots(db: Session, product_sku: Optional[str] = None) -> list[dict[str, Any]]:
    """
    Latest snapshot per product, ranked in SQL by taken_at then id so the result
    does not depend on the order rows are fetched in.
    """
    ranked = (
        db.query(
            InventorySnapshot.id.label("snapshot_id"),
            InventorySnapshot.product_id.label("product_id"),
            InventorySnapshot.stock_level.label("stock_level"),
            InventorySnapshot.taken_at.label("taken_at"),
            func.row_number().over(
                partition_by=InventorySnapshot.product_id,
                order_by=(InventorySnapshot.taken_at.desc(), InventorySnapshot.id.desc()),
            ).label("rn"),
        )
        .subquery()
    )
    q = (
        db.query(Product, ranked.c.stock_level, ranked.c.taken_at)
        .join(ranked, ranked.c.product_id == Product.id)
        .filter(ranked.c.rn == 1)
    )
    if product_sku:
        q = q.filter(Product.sku == product_sku)

    items = []
    for product, stock_level, taken_at in q.all():
        items.append({
            "product_id": product.id,
            "sku": product.sku,
            "name": product.name,
            "stock_level": stock_level,
            "min_stock": product.min_stock,
            "last_updated": isoformat(taken_at),
            "is_low_stock": is_low_stock(stock_level, product.min_stock),
        })
    return items


def inventory_items(db: Session, product_sku: Optional[str] = None, low_stock_only: bool = False) -> list[dict]:
    """Latest readings, optionally one sku and/or only low-stock items."""
    items = latest_snapshots(db, product_sku=product_sku)
    if low_stock_only:
        items = [i for i in items if i["is_low_stock"]]
    return sorted(items, key=lambda i: i["sku"])


def lowest_stock(db: Session, limit: int = TOP_N_DEFAULT, now: Optional[datetime] = None) -> dict[str, Any]:
    """The `limit` products with the lowest current stock, lowest first."""
    items = sorted(latest_snapshots(db), key=lambda i: (i["stock_level"], i["sku"]))[:limit]
    return {
        "items": items,
        "total_items": len(items),
        "low_stock_count": sum(1 for i in items if i["is_low_stock"]),
        "generated_at": isoformat(now or utcnow()),
    }


def low_stock_items(db: Session) -> list[dict]:
    items = [i for i in latest_snapshots(db) if i["is_low_stock"]]
    for i in items:
        i["deficit"] = (i["min_stock"] or 0) - i["stock_level"]
    return sorted(items, key=lambda i: i["sku"])


def check_low_stock(db: Session, now: Optional[datetime] = None) -> dict[str, Any]:
    """Emit one warning notification per low-stock product."""
    items = low_stock_items(db)
    for item in items:
        notify(
            db,
            "Low Stock Alert",
            f"{item['name']} ({item['sku']}) is below minimum stock. "
            f"Current: {item['stock_level']}, Min: {item['min_stock']}",
            "warning",
        )
    logger.info("low_stock_check_complete", extra={"low_stock_count": len(items)})
    return {
        "success": True,
        "low_stock_count": len(items),
        "items": items,
        "checked_at": isoformat(now or utcnow()),
    }


def search_products(db: Session, query: str, limit: int = 5) -> list[dict[str, Any]]:
    """Fuzzy match products by name or sku; each hit carries its latest stock."""
    products = db.query(Product).all()
    if not query or not products:
        return []
    choices = {}
    for p in products:
        choices[f"{p.sku} {p.name}"] = p
    matches = rf_process.extract(
        query,
        list(choices.keys()),
        scorer=fuzz.WRatio,
        processor=str.lower,
        limit=limit,
        score_cutoff=SEARCH_MATCH_THRESHOLD,
    )
    stock_by_id = {i["product_id"]: i for i in latest_snapshots(db)}
    results = []
    for key, score, _ in matches:
        p = choices[key]
        latest = stock_by_id.get(p.id)
        results.append({
            "product_id": p.id,
            "sku": p.sku,
            "name": p.name,
            "min_stock": p.min_stock,
            "stock_level": latest["stock_level"] if latest else None,
            "is_low_stock": latest["is_low_stock"] if latest else None,
            "score": round(score, 1),
        })
    return results
