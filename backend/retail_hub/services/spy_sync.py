"""
SpySystem integration jobs: login refresh, orders sync, inventory sync,
integration status, connection test and credential updates.

Jobs read the bearer token through the credential store and fail closed when it
is missing or expired; only login_refresh obtains a new one. Sync loops are
sequential and commit each record on its own, collecting per-record failures.
"""
import logging
from datetime import timedelta
from typing import Any, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from retail_hub import config
from retail_hub.errors import InputError, UpstreamError
from retail_hub.models import Product, InventorySnapshot, SpyOrder
from retail_hub.services.credentials import (
    DatabaseCredentialStore, CredentialStore,
    SPY_TOKEN, SPY_USERNAME, SPY_PASSWORD, SPY_API_URL, SPY_KEYS,
)
from retail_hub.services.notifications import notify, list_notifications
from retail_hub.services.spy_client import SpyClient
from retail_hub.utils import utcnow, isoformat, parse_datetime

logger = logging.getLogger(__name__)

MAX_REPORTED_ERRORS = 10
TOKEN_MISSING_MESSAGE = "SPY token missing or expired. Please refresh login first."


def _client(api_url: str, token: Optional[str] = None) -> SpyClient:
    """Build a SpySystem client. Tests replace this to inject a mock transport."""
    return SpyClient(api_url, token)


def _setting(store: CredentialStore, key: str) -> Optional[str]:
    """Secret from the store, falling back to the environment."""
    return store.get(key) or config.spy_env_credentials().get(key)


def _live_session(store: CredentialStore) -> tuple[str, str]:
    """(token, api_url) or InputError when either is missing or the token expired."""
    token = store.get(SPY_TOKEN)
    api_url = _setting(store, SPY_API_URL)
    if not token or not api_url:
        raise InputError(TOKEN_MISSING_MESSAGE)
    return token, api_url


def _error_summary(errors: list[str]) -> str:
    return f", {len(errors)} errors" if errors else ""


def login_refresh(db: Session) -> dict[str, Any]:
    """
    Log in with username/password, store the token with a fixed lifetime
    (SPY_TOKEN_TTL_SECONDS) and smoke-test it. Failures are recorded as an
    error notification and re-raised.
    """
    store = DatabaseCredentialStore(db)
    try:
        username = _setting(store, SPY_USERNAME)
        password = _setting(store, SPY_PASSWORD)
        api_url = _setting(store, SPY_API_URL)
        if not username or not password or not api_url:
            raise UpstreamError("Missing SpySystem credentials")

        with _client(api_url) as client:
            token = client.login(username, password)

        expires_at = utcnow() + timedelta(seconds=config.spy_token_ttl_seconds())
        store.put(SPY_TOKEN, token, expires_at=expires_at)

        with _client(api_url, token) as client:
            token_valid = not client.probe().is_error
    except (UpstreamError, SQLAlchemyError) as e:
        db.rollback()
        error = e.message if isinstance(e, UpstreamError) else str(e)
        logger.error("spy_login_failed", extra={"error": error})
        notify(db, "SpySystem Login Failed", f"Failed to refresh SpySystem token: {error}", "error")
        raise

    logger.info("spy_token_refreshed", extra={"expires_at": isoformat(expires_at), "token_valid": token_valid})
    return {
        "success": True,
        "token_refreshed": True,
        "expires_at": isoformat(expires_at),
        "token_valid": token_valid,
        "updated_at": isoformat(utcnow()),
    }


def _record_field(record: Any, key: str) -> Any:
    return record.get(key) if isinstance(record, dict) else None


def _upsert_spy_order(db: Session, record: Any) -> None:
    if not isinstance(record, dict):
        raise ValueError("record is not an object")
    order_number = record.get("order_number")
    if not order_number:
        raise ValueError("missing order_number")
    created_at = parse_datetime(record.get("created_at"))
    amount = record.get("total_amount")
    total_amount = float(amount) if amount not in (None, "") else None

    row = db.query(SpyOrder).filter(SpyOrder.order_number == str(order_number)).first()
    if row:
        row.created_at = created_at
        row.total_amount = total_amount
        row.payload = record
    else:
        db.add(SpyOrder(
            order_number=str(order_number),
            created_at=created_at,
            total_amount=total_amount,
            payload=record,
        ))
    db.commit()


def sync_orders(db: Session, days: int = 7) -> dict[str, Any]:
    """Fetch the last `days` of SpySystem orders and upsert each on order_number."""
    store = DatabaseCredentialStore(db)
    token, api_url = _live_session(store)

    end = utcnow()
    start = end - timedelta(days=days)
    with _client(api_url, token) as client:
        records = client.fetch_orders(start.date().isoformat(), end.date().isoformat())

    synced = 0
    errors: list[str] = []
    for record in records:
        order_number = _record_field(record, "order_number")
        try:
            _upsert_spy_order(db, record)
            synced += 1
        except Exception as e:  # per-record failure, run continues
            db.rollback()
            errors.append(f"Order {order_number}: {e}")
            logger.warning("spy_order_sync_failed", extra={"order_number": order_number, "error": str(e)})

    notify(
        db,
        "SPY Orders Sync Complete",
        f"Synced {synced} orders{_error_summary(errors)}",
        "warning" if errors else "success",
    )
    logger.info("spy_orders_sync_complete", extra={"synced": synced, "errors": len(errors)})
    return {
        "success": True,
        "synced_count": synced,
        "error_count": len(errors),
        "errors": errors[:MAX_REPORTED_ERRORS],
        "date_range": {"from": isoformat(start), "to": isoformat(end)},
        "updated_at": isoformat(utcnow()),
    }


def _upsert_product(db: Session, record: Any) -> Product:
    if not isinstance(record, dict):
        raise ValueError("record is not an object")
    sku = record.get("sku")
    if not sku:
        raise ValueError("missing sku")
    name = record.get("name") or sku
    product = db.query(Product).filter(Product.sku == str(sku)).first()
    if product:
        product.name = name
        product.updated_at = utcnow()
    else:
        product = Product(sku=str(sku), name=name)
        db.add(product)
    db.commit()
    db.refresh(product)
    return product


def _insert_snapshot(db: Session, product: Product, record: dict[str, Any]) -> None:
    stock_level = record.get("stock_level")
    if stock_level is None:
        raise ValueError("missing stock_level")
    db.add(InventorySnapshot(product_id=product.id, stock_level=int(stock_level), taken_at=utcnow()))
    db.commit()


def sync_inventory(db: Session) -> dict[str, Any]:
    """Upsert each SpySystem variant as a product, then append a stock snapshot."""
    store = DatabaseCredentialStore(db)
    token, api_url = _live_session(store)

    with _client(api_url, token) as client:
        records = client.fetch_stock()

    synced_products = 0
    synced_snapshots = 0
    errors: list[str] = []
    for record in records:
        sku = _record_field(record, "sku")
        try:
            product = _upsert_product(db, record)
        except Exception as e:
            db.rollback()
            errors.append(f"Product {sku}: {e}")
            logger.warning("spy_product_sync_failed", extra={"sku": sku, "error": str(e)})
            continue
        synced_products += 1
        try:
            _insert_snapshot(db, product, record)
            synced_snapshots += 1
        except Exception as e:
            db.rollback()
            errors.append(f"Inventory {sku}: {e}")
            logger.warning("spy_snapshot_sync_failed", extra={"sku": sku, "error": str(e)})

    notify(
        db,
        "SPY Inventory Sync Complete",
        f"Updated {synced_products} products, {synced_snapshots} inventory snapshots{_error_summary(errors)}",
        "warning" if errors else "success",
    )
    logger.info(
        "spy_inventory_sync_complete",
        extra={"products": synced_products, "snapshots": synced_snapshots, "errors": len(errors)},
    )
    return {
        "success": True,
        "synced_products": synced_products,
        "synced_snapshots": synced_snapshots,
        "error_count": len(errors),
        "errors": errors[:MAX_REPORTED_ERRORS],
        "updated_at": isoformat(utcnow()),
    }


def integration_status(db: Session) -> dict[str, Any]:
    """Token and credential metadata plus data counts. Never includes secret values."""
    store = DatabaseCredentialStore(db)
    meta = store.describe(SPY_KEYS)
    env = config.spy_env_credentials()
    token_meta = meta.get(SPY_TOKEN)
    return {
        "success": True,
        "status": {
            "token_exists": bool(token_meta) and not token_meta["expired"],
            "token_expires_at": token_meta["expires_at"] if token_meta else None,
            "token_updated_at": token_meta["updated_at"] if token_meta else None,
            "credentials_configured": all(
                k in meta or env.get(k) for k in (SPY_USERNAME, SPY_PASSWORD, SPY_API_URL)
            ),
            "orders_count": db.query(SpyOrder).count(),
            "products_count": db.query(Product).count(),
            "recent_notifications": list_notifications(db, limit=10, title_contains="SPY"),
        },
    }


def update_credentials(db: Session, username: str, password: str, api_url: str) -> dict[str, Any]:
    if not username or not password or not api_url:
        raise InputError("username, password, and api_url are required")
    store = DatabaseCredentialStore(db)
    store.put(SPY_USERNAME, username)
    store.put(SPY_PASSWORD, password)
    store.put(SPY_API_URL, api_url)
    notify(db, "SPY Credentials Updated", "SPY API credentials have been updated successfully", "success")
    return {"success": True, "message": "Credentials updated successfully"}


def check_connection(db: Session) -> dict[str, Any]:
    """Probe SpySystem with the live token."""
    store = DatabaseCredentialStore(db)
    token, api_url = _live_session(store)
    with _client(api_url, token) as client:
        resp = client.probe()
    ok = not resp.is_error
    return {
        "success": ok,
        "status_code": resp.status_code,
        "message": "Connection successful" if ok else f"Connection failed: {resp.status_code} {resp.reason_phrase}",
    }
