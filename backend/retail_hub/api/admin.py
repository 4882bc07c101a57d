"""
Admin action dispatcher for the SpySystem integration panel.

The body is parsed into one of the AdminCommand variants (tagged on "action")
and routed through ADMIN_HANDLERS, which has exactly one handler per variant.
"""
import logging
from typing import Any, Callable

from fastapi import APIRouter, Body, Depends
from pydantic import TypeAdapter, ValidationError
from sqlalchemy.orm import Session

from retail_hub.api.auth import require_roles
from retail_hub.db import get_db
from retail_hub.errors import InputError
from retail_hub.models import User
from retail_hub.schema import (
    ADMIN_ACTIONS,
    AdminCommand,
    ConnectionTestCommand,
    GetStatusCommand,
    RefreshTokenCommand,
    SyncInventoryCommand,
    SyncOrdersCommand,
    UpdateCredentialsCommand,
)
from retail_hub.services import spy_sync

logger = logging.getLogger(__name__)
router = APIRouter()

_command_adapter = TypeAdapter(AdminCommand)

ADMIN_HANDLERS: dict[type, Callable[[Session, Any], dict]] = {
    GetStatusCommand: lambda db, cmd: spy_sync.integration_status(db),
    RefreshTokenCommand: lambda db, cmd: spy_sync.login_refresh(db),
    SyncOrdersCommand: lambda db, cmd: spy_sync.sync_orders(db, days=cmd.days),
    SyncInventoryCommand: lambda db, cmd: spy_sync.sync_inventory(db),
    UpdateCredentialsCommand: lambda db, cmd: spy_sync.update_credentials(
        db, cmd.username, cmd.password, cmd.api_url
    ),
    ConnectionTestCommand: lambda db, cmd: spy_sync.check_connection(db),
}


def parse_command(payload: Any):
    if not isinstance(payload, dict) or payload.get("action") not in ADMIN_ACTIONS:
        raise InputError(f"Invalid action. Supported actions: {', '.join(ADMIN_ACTIONS)}")
    try:
        return _command_adapter.validate_python(payload)
    except ValidationError as e:
        raise InputError(f"Invalid {payload['action']} command: {e.errors()[0]['msg']}")


@router.post("/spy/admin")
def spy_admin(
    payload: Any = Body(...),
    user: User = Depends(require_roles("admin")),
    db: Session = Depends(get_db),
):
    """Single admin endpoint multiplexing status, refresh, sync, credential and connection actions."""
    command = parse_command(payload)
    logger.info("admin_action", extra={"action": command.action, "user_id": user.id})
    return ADMIN_HANDLERS[type(command)](db, command)
