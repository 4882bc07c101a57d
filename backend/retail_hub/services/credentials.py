"""
Credential store for third-party API secrets.

The store exposes get/put/describe. `get` fails closed: a key whose expires_at
is in the past is reported exactly like a missing key, so no consumer can use a
stale token. `describe` returns metadata only and never the values.
"""
import logging
from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy.orm import Session

from retail_hub.models import Secret
from retail_hub.utils import utcnow, isoformat

logger = logging.getLogger(__name__)

SPY_TOKEN = "SPY_TOKEN"
SPY_USERNAME = "SPY_USERNAME"
SPY_PASSWORD = "SPY_PASSWORD"
SPY_API_URL = "SPY_API_URL"
SPY_KEYS = (SPY_TOKEN, SPY_USERNAME, SPY_PASSWORD, SPY_API_URL)


class CredentialStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def put(self, key: str, value: str, expires_at: Optional[datetime] = None) -> None: ...

    def describe(self, keys: tuple[str, ...]) -> dict[str, dict]: ...


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    return expires_at is not None and expires_at < (now or utcnow())


class DatabaseCredentialStore:
    """CredentialStore backed by the secrets table."""

    def __init__(self, db: Session):
        self.db = db

    def _row(self, key: str) -> Optional[Secret]:
        return self.db.query(Secret).filter(Secret.key == key).first()

    def get(self, key: str) -> Optional[str]:
        row = self._row(key)
        if not row or not row.value:
            return None
        if is_expired(row.expires_at):
            logger.info("credential_expired", extra={"key": key})
            return None
        return row.value

    def put(self, key: str, value: str, expires_at: Optional[datetime] = None) -> None:
        row = self._row(key)
        now = utcnow()
        if row:
            row.value = value
            row.expires_at = expires_at
            row.updated_at = now
        else:
            self.db.add(Secret(key=key, value=value, expires_at=expires_at, updated_at=now))
        self.db.commit()
        logger.info("credential_stored", extra={"key": key, "expires_at": isoformat(expires_at)})

    def describe(self, keys: tuple[str, ...]) -> dict[str, dict]:
        """{key: {expires_at, updated_at, expired}} for keys that exist."""
        rows = self.db.query(Secret).filter(Secret.key.in_(keys)).all()
        return {
            r.key: {
                "expires_at": isoformat(r.expires_at),
                "updated_at": isoformat(r.updated_at),
                "expired": is_expired(r.expires_at),
            }
            for r in rows
        }
