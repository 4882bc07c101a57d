"""
Shopify webhook ingestion: HMAC signature check over the raw body and
order upsert keyed on the platform order id (last write wins).
"""
import base64
import hashlib
import hmac
import logging
from typing import Any, Optional

from sqlalchemy.orm import Session

from retail_hub.errors import InputError
from retail_hub.models import ShopifyOrder
from retail_hub.services.notifications import notify
from retail_hub.utils import parse_datetime, utcnow

logger = logging.getLogger(__name__)

ORDER_TOPICS = ("orders/create", "orders/updated")


def compute_signature(secret: str, body: bytes) -> str:
    """Base64 HMAC-SHA256 of the raw body, as sent in X-Shopify-Hmac-Sha256."""
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_signature(secret: Optional[str], body: bytes, header: Optional[str]) -> bool:
    if not secret or not header:
        return False
    return hmac.compare_digest(compute_signature(secret, body), header.strip())


def upsert_order(db: Session, payload: dict[str, Any]) -> ShopifyOrder:
    """Insert or overwrite the order row for payload['id']; keeps the whole payload."""
    order_id = payload.get("id")
    if order_id is None:
        raise InputError("Order payload has no id")
    try:
        order_id = int(order_id)
    except (TypeError, ValueError):
        raise InputError(f"Invalid order id {order_id!r}")
    try:
        created_at = parse_datetime(payload.get("created_at")) or utcnow()
    except ValueError:
        raise InputError(f"Invalid created_at {payload.get('created_at')!r}")

    fields = {
        "created_at": created_at,
        "total_amount": float(payload.get("total_price") or 0),
        "status": payload.get("fulfillment_status") or "pending",
        "customer_email": (payload.get("customer") or {}).get("email"),
        "payload": payload,
    }
    row = db.get(ShopifyOrder, order_id)
    if row:
        for k, v in fields.items():
            setattr(row, k, v)
    else:
        row = ShopifyOrder(id=order_id, **fields)
        db.add(row)
    db.commit()
    db.refresh(row)
    return row


def handle_webhook(db: Session, topic: Optional[str], payload: dict[str, Any]) -> dict[str, Any]:
    """Apply a verified webhook. Unknown topics are acknowledged without writes."""
    if topic not in ORDER_TOPICS:
        logger.info("shopify_webhook_ignored", extra={"topic": topic})
        return {"success": True, "message": f"Received {topic} webhook"}

    row = upsert_order(db, payload)
    logger.info("shopify_order_upserted", extra={"order_id": row.id, "topic": topic})
    if topic == "orders/create":
        notify(
            db,
            "New Shopify Order",
            f"Order #{payload.get('order_number')} for {payload.get('total_price')} {payload.get('currency')}",
            "info",
        )
    return {"success": True, "order_id": row.id}
