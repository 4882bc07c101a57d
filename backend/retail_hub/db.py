"""
Database setup for Retail Hub.
SQLAlchemy engine over DATABASE_URL (SQLite file by default) for users, products,
inventory snapshots, both order sources, notifications and secrets.
"""
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from retail_hub import config

DATABASE_URL = config.database_url()

if DATABASE_URL.startswith("sqlite:///"):
    Path(DATABASE_URL[len("sqlite:///"):]).parent.mkdir(parents=True, exist_ok=True)
    _connect_args = {"check_same_thread": False}
else:
    _connect_args = {}

engine = create_engine(
    DATABASE_URL,
    connect_args=_connect_args,
    echo=config.sql_echo(),
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """FastAPI dependency: one session per request, closed afterwards."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Create any missing tables (run from the app lifespan and per test)."""
    from retail_hub.models import (  # noqa: F401
        User, Product, InventorySnapshot, ShopifyOrder, SpyOrder, Notification, Secret,
    )
    Base.metadata.create_all(bind=engine)
