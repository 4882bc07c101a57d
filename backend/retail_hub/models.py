"""
SQLAlchemy models for users, products, inventory snapshots, Shopify and SpySystem
orders, notifications and third-party secrets.
"""
from sqlalchemy import Column, Integer, BigInteger, String, Numeric, DateTime, Text, ForeignKey, JSON
from sqlalchemy.orm import relationship

from retail_hub.db import Base
from retail_hub.utils import utcnow

ROLES = ("sales", "warehouse", "admin")
NOTIFICATION_TYPES = ("info", "warning", "error", "success")


class User(Base):
    """Dashboard user. Created on first authentication; role is assigned manually."""
    __tablename__ = "users"

    id = Column(String(64), primary_key=True)  # identity provider subject
    role = Column(String(16), nullable=True)  # sales | warehouse | admin
    email = Column(String(256), nullable=True)
    created_at = Column(DateTime, default=utcnow)


class Product(Base):
    """Catalog product, upserted by the inventory sync keyed on sku."""
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    sku = Column(String(128), unique=True, nullable=False, index=True)
    name = Column(String(256), nullable=False)
    min_stock = Column(Integer, nullable=False, default=0)
    embedding = Column(JSON, nullable=True)  # list[float], unused by queries
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    snapshots = relationship("InventorySnapshot", back_populates="product")


class InventorySnapshot(Base):
    """Append-only stock reading; current stock is the latest row per product."""
    __tablename__ = "inventory_snapshots"

    id = Column(Integer, primary_key=True, autoincrement=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)
    stock_level = Column(Integer, nullable=False)
    taken_at = Column(DateTime, default=utcnow, index=True)

    product = relationship("Product", back_populates="snapshots")


class ShopifyOrder(Base):
    """Shopify order keyed on the platform order id; payload keeps the full webhook body."""
    __tablename__ = "shopify_orders"

    id = Column(BigInteger, primary_key=True, autoincrement=False)
    created_at = Column(DateTime, nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=True)
    status = Column(String(64), nullable=True)
    customer_email = Column(String(256), nullable=True)
    payload = Column(JSON, nullable=True)


class SpyOrder(Base):
    """SpySystem order keyed on order_number."""
    __tablename__ = "spy_orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_number = Column(String(128), unique=True, nullable=False, index=True)
    created_at = Column(DateTime, nullable=True, index=True)
    total_amount = Column(Numeric(12, 2), nullable=True)
    payload = Column(JSON, nullable=True)


class Notification(Base):
    """Informational record emitted by jobs and webhooks."""
    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(256), nullable=False)
    body = Column(Text, nullable=True)
    type = Column(String(16), nullable=False, default="info")
    created_at = Column(DateTime, default=utcnow, index=True)
    read_by = Column(JSON, nullable=False, default=list)  # list of user ids


class Secret(Base):
    """Key/value credential with optional expiry (SpySystem token and login)."""
    __tablename__ = "secrets"

    id = Column(Integer, primary_key=True, autoincrement=True)
    key = Column(String(128), unique=True, nullable=False, index=True)
    value = Column(Text, nullable=False)
    expires_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)
