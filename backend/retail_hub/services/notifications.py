"""
Notifications: insert informational records, list them for a user, acknowledge.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from retail_hub.errors import InputError, NotFoundError
from retail_hub.models import Notification, NOTIFICATION_TYPES
from retail_hub.utils import isoformat

logger = logging.getLogger(__name__)


def notify(db: Session, title: str, body: Optional[str] = None, type_: str = "info") -> Notification:
    """Insert and commit a notification."""
    if type_ not in NOTIFICATION_TYPES:
        raise InputError(f"Invalid notification type '{type_}'")
    row = Notification(title=title, body=body, type=type_, read_by=[])
    db.add(row)
    db.commit()
    db.refresh(row)
    logger.info("notification_created", extra={"title": title, "type": type_})
    return row


def serialize(row: Notification, user_id: Optional[str] = None) -> dict:
    data = {
        "id": row.id,
        "title": row.title,
        "body": row.body,
        "type": row.type,
        "created_at": isoformat(row.created_at),
    }
    if user_id is not None:
        data["read"] = user_id in (row.read_by or [])
    return data


def list_notifications(db: Session, user_id: Optional[str] = None, limit: int = 20,
                       title_contains: Optional[str] = None) -> list[dict]:
    """Newest first."""
    q = db.query(Notification)
    if title_contains:
        q = q.filter(Notification.title.ilike(f"%{title_contains}%"))
    rows = q.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()
    return [serialize(r, user_id) for r in rows]


def mark_read(db: Session, notification_id: int, user_id: str) -> dict:
    """Add user_id to read_by once."""
    row = db.get(Notification, notification_id)
    if not row:
        raise NotFoundError("Notification not found")
    read_by = list(row.read_by or [])
    if user_id not in read_by:
        # JSON column: assign a new list so the change is flushed
        row.read_by = read_by + [user_id]
        db.commit()
        db.refresh(row)
    return serialize(row, user_id)
