"""
API routes: current user, sales summary, inventory ranking, assistant,
notifications, SpySystem jobs and scheduled jobs.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from retail_hub.api.auth import (
    get_current_user,
    require_any_role,
    require_roles,
    require_service_or_admin,
)
from retail_hub.db import get_db
from retail_hub.models import User
from retail_hub.schema import (
    AskRequest,
    AskResponse,
    InventoryTopResponse,
    NotificationOut,
    NotificationsResponse,
    SalesSummaryResponse,
    SyncOrdersRequest,
    UserOut,
)
from retail_hub.services import assistant, inventory, notifications, reports, sales, spy_sync

logger = logging.getLogger(__name__)
router = APIRouter()

sales_access = require_roles("sales", "admin")
warehouse_access = require_roles("warehouse", "admin")
admin_access = require_roles("admin")


@router.get("/me", response_model=UserOut)
def me(user: User = Depends(get_current_user)):
    """The authenticated user and their role (null until assigned)."""
    return UserOut(id=user.id, email=user.email, role=user.role)


@router.get("/sales/summary", response_model=SalesSummaryResponse)
def sales_summary(
    period: str = "day",
    user: User = Depends(sales_access),
    db: Session = Depends(get_db),
):
    """Totals per source and combined since the start of the day, week or month."""
    return sales.sales_summary(db, period)


@router.get("/inventory/top", response_model=InventoryTopResponse)
def inventory_top(
    limit: int = Query(inventory.TOP_N_DEFAULT, ge=1, le=200),
    user: User = Depends(warehouse_access),
    db: Session = Depends(get_db),
):
    """Products with the lowest current stock, lowest first."""
    return inventory.lowest_stock(db, limit=limit)


@router.post("/ai/ask", response_model=AskResponse)
def ai_ask(req: AskRequest, user: User = Depends(require_any_role), db: Session = Depends(get_db)):
    """Natural-language question answered through one data function call."""
    return assistant.ask(db, req.query or "", user.role)


@router.get("/notifications", response_model=NotificationsResponse)
def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return NotificationsResponse(
        notifications=[NotificationOut(**n) for n in notifications.list_notifications(db, user.id, limit)]
    )


@router.post("/notifications/{notification_id}/read", response_model=NotificationOut)
def mark_notification_read(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return NotificationOut(**notifications.mark_read(db, notification_id, user.id))


# --- SpySystem jobs ---

@router.post("/spy/login-refresh")
def spy_login_refresh(caller: Optional[User] = Depends(require_service_or_admin), db: Session = Depends(get_db)):
    """Log in to SpySystem and store a fresh bearer token."""
    return spy_sync.login_refresh(db)


@router.post("/spy/sync-orders")
def spy_sync_orders(
    req: Optional[SyncOrdersRequest] = None,
    user: User = Depends(admin_access),
    db: Session = Depends(get_db),
):
    days = req.days if req else 7
    return spy_sync.sync_orders(db, days=days)


@router.post("/spy/sync-inventory")
def spy_sync_inventory(user: User = Depends(admin_access), db: Session = Depends(get_db)):
    return spy_sync.sync_inventory(db)


# --- Scheduled jobs ---

@router.post("/jobs/inventory-check")
def inventory_check(caller: Optional[User] = Depends(require_service_or_admin), db: Session = Depends(get_db)):
    """Emit a warning notification for every low-stock product."""
    return inventory.check_low_stock(db)


@router.post("/jobs/weekly-report")
def weekly_report(caller: Optional[User] = Depends(require_service_or_admin), db: Session = Depends(get_db)):
    """Write this week's Markdown/HTML report and announce it."""
    return reports.weekly_report(db)
