"""
SpySystem REST client over httpx. Non-2xx responses and transport errors are
raised as UpstreamError with the status and reason.
"""
import logging
from typing import Any, Optional

import httpx

from retail_hub import config
from retail_hub.errors import UpstreamError

logger = logging.getLogger(__name__)


class SpyClient:
    """Thin wrapper: one method per SpySystem endpoint the sync jobs use."""

    def __init__(self, api_url: str, token: Optional[str] = None,
                 transport: Optional[httpx.BaseTransport] = None):
        self.api_url = api_url.rstrip("/")
        self.token = token
        self._client = httpx.Client(
            base_url=self.api_url,
            timeout=config.spy_timeout_seconds(),
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"
        return headers

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            return self._client.request(method, path, headers=self._headers(), **kwargs)
        except httpx.HTTPError as e:
            logger.warning("spy_request_failed", extra={"path": path, "error": str(e)})
            raise UpstreamError(f"SPY API network error: {e}") from e

    def _json(self, method: str, path: str, **kwargs) -> Any:
        resp = self._request(method, path, **kwargs)
        if resp.is_error:
            raise UpstreamError(f"SPY API error: {resp.status_code} {resp.reason_phrase}")
        try:
            return resp.json()
        except ValueError as e:
            raise UpstreamError(f"SPY API returned invalid JSON: {e}") from e

    def _records(self, path: str, key: str, params: dict) -> list:
        """Record list under `key` (or `data`) of a JSON object response."""
        data = self._json("GET", path, params=params)
        records = (data.get(key) or data.get("data") or []) if isinstance(data, dict) else None
        if not isinstance(records, list):
            raise UpstreamError(f"SPY API returned an unexpected response for {path}")
        return records

    def login(self, username: str, password: str) -> str:
        """POST /auth/login; returns the bearer token."""
        resp = self._request("POST", "/auth/login", json={"username": username, "password": password})
        if resp.is_error:
            raise UpstreamError(f"SpySystem login failed: {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise UpstreamError(f"SpySystem login returned invalid JSON: {e}") from e
        if not isinstance(data, dict):
            raise UpstreamError("SpySystem login returned an unexpected response")
        token = data.get("token") or data.get("access_token")
        if not token:
            raise UpstreamError("No token received from SpySystem")
        return token

    def probe(self) -> httpx.Response:
        """GET /products?limit=1, used as a connection smoke test."""
        return self._request("GET", "/products", params={"limit": 1})

    def fetch_orders(self, date_from: str, date_to: str, limit: int = 100) -> list:
        return self._records("/orders", "orders", {"from": date_from, "to": date_to, "limit": limit})

    def fetch_stock(self, limit: int = 500) -> list:
        return self._records("/variants/stock", "variants", {"detailed": "true", "limit": limit})
