"""Storage-agnostic access to accounts, catalog items, photos and orders.

Every backend hands records back as plain dicts keyed by column name, with
datetimes rendered as ISO-8601 strings, so callers never see which engine is
behind the store.
"""
from __future__ import annotations
import logging
import os
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Type

from sqlalchemy import event, delete as sa_delete, update as sa_update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import SQLModel, Session, create_engine, select

from .errors import ConstraintViolation, DuplicateKey, StoreUnavailable
from .models import Account, CatalogItem, Photo, Order

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


class Kind(str, Enum):
    ACCOUNTS = "accounts"
    ITEMS = "items"
    PHOTOS = "photos"
    ORDERS = "orders"


MODELS: Dict[Kind, Type[SQLModel]] = {
    Kind.ACCOUNTS: Account,
    Kind.ITEMS: CatalogItem,
    Kind.PHOTOS: Photo,
    Kind.ORDERS: Order,
}

# (field, descending) used when the caller does not ask for an ordering
DEFAULT_ORDER: Dict[Kind, Tuple[str, bool]] = {
    Kind.ACCOUNTS: ("id", False),
    Kind.ITEMS: ("id", True),
    Kind.PHOTOS: ("sort_order", False),
    Kind.ORDERS: ("id", True),
}


def columns(kind: Kind) -> List[str]:
    return [c.name for c in MODELS[kind].__table__.columns]


def check_fields(kind: Kind, fields: Dict[str, Any]) -> None:
    known = set(columns(kind))
    for name in fields:
        if name == "id":
            raise ConstraintViolation("id is generated by the store")
        if name not in known:
            raise ConstraintViolation(f"Unknown field '{name}' for {kind.value}")


def to_jsonable(value: Any) -> Any:
    """Datetimes become UTC ISO-8601 strings; SQLite hands them back naive."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat()
    return value


def build_row(kind: Kind, fields: Dict[str, Any]) -> Record:
    """Apply the model's defaults to `fields` the same way for every backend."""
    obj = MODELS[kind](**fields)
    return {name: to_jsonable(getattr(obj, name)) for name in columns(kind)}


class RecordStore:
    """Interface shared by every backend."""

    name = "abstract"

    def query(self, kind: Kind, filters: Optional[Dict[str, Any]] = None,
              order_by: Optional[str] = None, descending: Optional[bool] = None) -> List[Record]:
        raise NotImplementedError

    def get(self, kind: Kind, key: int) -> Optional[Record]:
        raise NotImplementedError

    def insert(self, kind: Kind, fields: Dict[str, Any]) -> int:
        raise NotImplementedError

    def update(self, kind: Kind, key: int, changes: Dict[str, Any]) -> int:
        raise NotImplementedError

    def delete(self, kind: Kind, key: int) -> int:
        raise NotImplementedError

    def close(self) -> None:
        pass

    @staticmethod
    def ordering(kind: Kind, order_by: Optional[str], descending: Optional[bool]) -> Tuple[str, bool]:
        field, default_desc = DEFAULT_ORDER[kind]
        if order_by is not None:
            field = order_by
            default_desc = False
        if field not in columns(kind):
            raise ConstraintViolation(f"Unknown field '{field}' for {kind.value}")
        return field, default_desc if descending is None else descending


def _is_unique_violation(exc: IntegrityError) -> bool:
    if getattr(exc.orig, "pgcode", None) == "23505":
        return True
    msg = str(exc.orig).lower()
    return "unique" in msg or "duplicate" in msg


class SqlRecordStore(RecordStore):
    """Relational (PostgreSQL) or embedded (SQLite file) store on one engine.

    Each call runs in its own session, so a read that follows a write in the
    same process always observes it. Photo rows are removed by the declared
    ON DELETE CASCADE.
    """

    def __init__(self, engine):
        self.engine = engine
        self.name = engine.dialect.name
        try:
            SQLModel.metadata.create_all(engine)
        except SQLAlchemyError as e:
            logger.exception("could not initialise %s schema", self.name)
            raise StoreUnavailable() from e

    @classmethod
    def from_url(cls, url: str) -> "SqlRecordStore":
        connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
        engine = create_engine(url, connect_args=connect_args, pool_pre_ping=True)
        if engine.dialect.name == "sqlite":
            @event.listens_for(engine, "connect")
            def _enable_foreign_keys(dbapi_conn, _record):
                cur = dbapi_conn.cursor()
                cur.execute("PRAGMA foreign_keys=ON")
                cur.close()
        return cls(engine)

    @classmethod
    def sqlite(cls, path: str) -> "SqlRecordStore":
        os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        return cls.from_url(f"sqlite:///{path}")

    @contextmanager
    def _guard(self, action: str, kind: Kind):
        try:
            yield
        except IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateKey(f"Duplicate value in {kind.value}") from e
            raise ConstraintViolation(f"Constraint violated in {kind.value}") from e
        except SQLAlchemyError as e:
            logger.exception("%s on %s failed (%s backend)", action, kind.value, self.name)
            raise StoreUnavailable() from e

    def _record(self, kind: Kind, obj) -> Record:
        return {name: to_jsonable(getattr(obj, name)) for name in columns(kind)}

    def query(self, kind, filters=None, order_by=None, descending=None):
        model = MODELS[kind]
        table = model.__table__
        filters = filters or {}
        for name in filters:
            if name not in table.c:
                raise ConstraintViolation(f"Unknown field '{name}' for {kind.value}")
        field, desc = self.ordering(kind, order_by, descending)

        stmt = select(model)
        for name, value in filters.items():
            stmt = stmt.where(table.c[name] == value)
        col, tie = table.c[field], table.c["id"]
        stmt = stmt.order_by(col.desc() if desc else col.asc(), tie.desc() if desc else tie.asc())
        with self._guard("query", kind):
            with Session(self.engine) as session:
                return [self._record(kind, row) for row in session.exec(stmt).all()]

    def get(self, kind, key):
        with self._guard("get", kind):
            with Session(self.engine) as session:
                obj = session.get(MODELS[kind], key)
                return self._record(kind, obj) if obj is not None else None

    def insert(self, kind, fields):
        check_fields(kind, fields)
        obj = MODELS[kind](**fields)
        with self._guard("insert", kind):
            with Session(self.engine) as session:
                session.add(obj)
                session.commit()
                session.refresh(obj)
                return obj.id

    def update(self, kind, key, changes):
        check_fields(kind, changes)
        if not changes:
            return 1 if self.get(kind, key) is not None else 0
        table = MODELS[kind].__table__
        stmt = sa_update(table).where(table.c.id == key).values(**changes)
        with self._guard("update", kind):
            with self.engine.begin() as conn:
                return conn.execute(stmt).rowcount

    def delete(self, kind, key):
        table = MODELS[kind].__table__
        stmt = sa_delete(table).where(table.c.id == key)
        with self._guard("delete", kind):
            with self.engine.begin() as conn:
                return conn.execute(stmt).rowcount

    def close(self):
        self.engine.dispose()


def build_record_store(settings) -> RecordStore:
    from .json_store import JsonRecordStore

    backend = settings.store_backend
    if backend == "postgres":
        if not settings.database_url:
            raise StoreUnavailable("SF_DATABASE_URL is required for the postgres backend")
        store = SqlRecordStore.from_url(settings.database_url)
    elif backend == "sqlite":
        store = SqlRecordStore.sqlite(settings.sqlite_path)
    elif backend == "json":
        store = JsonRecordStore(settings.json_path)
    elif backend == "memory":
        store = JsonRecordStore(None)
    else:
        raise ValueError(f"unknown store backend: {backend}")
    logger.info("record store ready (%s)", store.name)
    return store
