"""
Pydantic schemas for API request/response validation, including the tagged
admin command union.
"""
from typing import Any, Annotated, Literal, Optional, Union, get_args

from pydantic import BaseModel, Field


# --- Users ---
class UserOut(BaseModel):
    """Current authenticated user."""
    id: str
    email: Optional[str] = None
    role: Optional[str] = None

    class Config:
        from_attributes = True


# --- Sales ---
class SourceTotals(BaseModel):
    total: float
    order_count: int


class SalesSummaryResponse(BaseModel):
    """Response from GET /sales/summary."""
    period: str
    start_date: str
    end_date: str
    shopify: SourceTotals
    spy: SourceTotals
    combined: SourceTotals


# --- Inventory ---
class InventoryItem(BaseModel):
    """Latest stock reading for one product."""
    product_id: int
    sku: str
    name: str
    stock_level: int
    min_stock: int
    last_updated: Optional[str] = None
    is_low_stock: bool


class InventoryTopResponse(BaseModel):
    """Lowest-stock ranking."""
    items: list[InventoryItem]
    total_items: int
    low_stock_count: int
    generated_at: str


# --- Assistant ---
class AskRequest(BaseModel):
    """Request body for POST /ai/ask."""
    query: Optional[str] = Field(None, description="Free-text question")


class Citation(BaseModel):
    source: str  # name of the function that ran
    data: Any


class AskResponse(BaseModel):
    answer: Optional[str] = None
    citations: list[Citation]


# --- Notifications ---
class NotificationOut(BaseModel):
    id: int
    title: str
    body: Optional[str] = None
    type: str
    created_at: Optional[str] = None
    read: Optional[bool] = None


class NotificationsResponse(BaseModel):
    notifications: list[NotificationOut]


# --- SpySystem jobs ---
class SyncOrdersRequest(BaseModel):
    days: int = Field(7, ge=1, le=365)


# --- Admin commands (discriminated on "action") ---
class GetStatusCommand(BaseModel):
    action: Literal["get_status"]


class RefreshTokenCommand(BaseModel):
    action: Literal["refresh_token"]


class SyncOrdersCommand(BaseModel):
    action: Literal["sync_orders"]
    days: int = Field(7, ge=1, le=365)


class SyncInventoryCommand(BaseModel):
    action: Literal["sync_inventory"]


class UpdateCredentialsCommand(BaseModel):
    action: Literal["update_credentials"]
    username: Optional[str] = None
    password: Optional[str] = None
    api_url: Optional[str] = None


class ConnectionTestCommand(BaseModel):
    action: Literal["test_connection"]


AdminCommand = Annotated[
    Union[
        GetStatusCommand,
        RefreshTokenCommand,
        SyncOrdersCommand,
        SyncInventoryCommand,
        UpdateCredentialsCommand,
        ConnectionTestCommand,
    ],
    Field(discriminator="action"),
]

ADMIN_COMMANDS = get_args(get_args(AdminCommand)[0])
ADMIN_ACTIONS = tuple(get_args(c.model_fields["action"].annotation)[0] for c in ADMIN_COMMANDS)
