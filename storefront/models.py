from __future__ import annotations
from typing import Optional
from datetime import datetime, timezone
from sqlalchemy import DateTime
from sqlmodel import SQLModel, Field

ORDER_ACTIVE = "active"
ORDER_ARCHIVED = "archived"
ORDER_STATUSES = (ORDER_ACTIVE, ORDER_ARCHIVED)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def timestamp(**kw):
    return Field(default_factory=utcnow, sa_type=DateTime(timezone=True), **kw)


class Account(SQLModel, table=True):
    __tablename__ = "accounts"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    created_at: datetime = timestamp()


class CatalogItem(SQLModel, table=True):
    __tablename__ = "catalog_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    description: Optional[str] = None
    price: Optional[float] = None
    image_ref: Optional[str] = None  # single-image variant only
    created_at: datetime = timestamp(index=True)
    updated_at: datetime = timestamp()


class Photo(SQLModel, table=True):
    __tablename__ = "photos"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    item_id: int = Field(foreign_key="catalog_items.id", ondelete="CASCADE", index=True)
    image_ref: str
    is_primary: bool = Field(default=False)
    sort_order: int = Field(default=0)
    created_at: datetime = timestamp()


class Order(SQLModel, table=True):
    __tablename__ = "orders"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Optional[int] = Field(default=None, primary_key=True)
    full_name: str
    phone: str
    email: str
    address: str
    notes: Optional[str] = None
    items_json: str  # {"items": [{"id", "name", "price"}]}, frozen at submission
    total_price: float
    status: str = Field(default=ORDER_ACTIVE, index=True)
    created_at: datetime = timestamp()
