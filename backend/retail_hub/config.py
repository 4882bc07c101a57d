"""
Environment configuration. Every accessor reads os.environ on each call so
handlers pick up rotated secrets without a restart; nothing is validated at startup.
"""
import os
from pathlib import Path
from typing import Optional

# config.py lives in backend/retail_hub/; project root is two levels up
PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent


def database_url() -> str:
    default = f"sqlite:///{PROJECT_ROOT / 'data' / 'retail_hub.db'}"
    return os.environ.get("DATABASE_URL", default)


def sql_echo() -> bool:
    return os.environ.get("SQL_ECHO", "").lower() == "true"


def jwt_secret() -> Optional[str]:
    return os.environ.get("AUTH_JWT_SECRET") or None


def service_role_key() -> Optional[str]:
    return os.environ.get("SERVICE_ROLE_KEY") or None


def shopify_webhook_secret() -> Optional[str]:
    return os.environ.get("SHOPIFY_WEBHOOK_SECRET") or None


def spy_env_credentials() -> dict[str, Optional[str]]:
    """SpySystem credentials from the environment (fallback for the secrets table)."""
    return {
        "SPY_USERNAME": os.environ.get("SPY_USERNAME") or None,
        "SPY_PASSWORD": os.environ.get("SPY_PASSWORD") or None,
        "SPY_API_URL": os.environ.get("SPY_API_URL") or None,
    }


def spy_token_ttl_seconds() -> int:
    return int(os.environ.get("SPY_TOKEN_TTL_SECONDS", "3600"))


def spy_timeout_seconds() -> float:
    return float(os.environ.get("SPY_TIMEOUT_SECONDS", "30"))


def openai_api_key() -> Optional[str]:
    return os.environ.get("OPENAI_API_KEY") or None


def openai_model() -> str:
    return os.environ.get("OPENAI_MODEL", "gpt-4o")


def reports_dir() -> Path:
    return Path(os.environ.get("REPORTS_DIR", "reports"))


def log_level() -> str:
    return os.environ.get("LOG_LEVEL", "INFO").upper()
