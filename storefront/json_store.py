"""JSON-file mock of the record store.

The whole state is loaded at the start of every call and the whole file is
rewritten at the end of every mutating call. A process-local lock makes each
call atomic for this process only; separate processes sharing the file can
still lose updates.
"""
from __future__ import annotations
import json
import logging
import os
import tempfile
import threading
from typing import Any, Dict, Optional

from .errors import ConstraintViolation, DuplicateKey, StoreUnavailable
from .record_store import Kind, RecordStore, MODELS, build_row, check_fields, to_jsonable

logger = logging.getLogger(__name__)

UNIQUE_FIELDS = {Kind.ACCOUNTS: ("email",)}
# child kind -> (field, parent kind); deleting the parent removes the children
FOREIGN_KEYS = {Kind.PHOTOS: ("item_id", Kind.ITEMS)}


def _empty_state() -> Dict[str, Any]:
    return {
        "tables": {k.value: [] for k in Kind},
        "seq": {k.value: 0 for k in Kind},
    }


def _sort_key(field: str):
    def key(row):
        v = row.get(field)
        return (v is not None, v if v is not None else 0, row["id"])
    return key


class JsonRecordStore(RecordStore):
    """Mock backend. With `path=None` the state lives in memory only."""

    def __init__(self, path: Optional[str] = None):
        self.path = path
        self.name = "json" if path else "memory"
        self._lock = threading.RLock()
        self._memory = _empty_state()
        if path:
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)

    # ---------- persistence ----------

    def _load(self) -> Dict[str, Any]:
        if not self.path:
            return self._memory
        if not os.path.exists(self.path):
            return _empty_state()
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                state = json.load(f)
        except (OSError, ValueError) as e:
            logger.exception("could not read %s", self.path)
            raise StoreUnavailable() from e
        base = _empty_state()
        base["tables"].update(state.get("tables", {}))
        base["seq"].update(state.get("seq", {}))
        return base

    def _save(self, state: Dict[str, Any]) -> None:
        if not self.path:
            self._memory = state
            return
        directory = os.path.dirname(os.path.abspath(self.path))
        try:
            fd, tmp = tempfile.mkstemp(prefix=".storefront-", suffix=".json", dir=directory)
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(state, f, ensure_ascii=False, indent=2)
            os.replace(tmp, self.path)
        except OSError as e:
            logger.exception("could not write %s", self.path)
            raise StoreUnavailable() from e

    # ---------- emulated constraints ----------

    def _check_not_null(self, kind: Kind, row: Dict[str, Any]) -> None:
        for col in MODELS[kind].__table__.columns:
            if col.primary_key or col.nullable:
                continue
            if row.get(col.name) is None:
                raise ConstraintViolation(f"{kind.value}.{col.name} may not be null")

    def _check_unique(self, state, kind: Kind, row: Dict[str, Any]) -> None:
        for field in UNIQUE_FIELDS.get(kind, ()):
            for other in state["tables"][kind.value]:
                if other["id"] != row.get("id") and other.get(field) == row.get(field):
                    raise DuplicateKey(f"Duplicate value in {kind.value}")

    def _check_foreign_keys(self, state, kind: Kind, row: Dict[str, Any]) -> None:
        if kind not in FOREIGN_KEYS:
            return
        field, parent = FOREIGN_KEYS[kind]
        if not any(p["id"] == row.get(field) for p in state["tables"][parent.value]):
            raise ConstraintViolation(f"{kind.value}.{field} references a missing {parent.value} row")

    # ---------- operations ----------

    def query(self, kind, filters=None, order_by=None, descending=None):
        filters = filters or {}
        check_fields(kind, {k: v for k, v in filters.items() if k != "id"})
        field, desc = self.ordering(kind, order_by, descending)
        with self._lock:
            rows = self._load()["tables"][kind.value]
            out = [dict(r) for r in rows if all(r.get(k) == v for k, v in filters.items())]
        out.sort(key=_sort_key(field), reverse=desc)
        return out

    def get(self, kind, key):
        with self._lock:
            for row in self._load()["tables"][kind.value]:
                if row["id"] == key:
                    return dict(row)
        return None

    def insert(self, kind, fields):
        check_fields(kind, fields)
        row = build_row(kind, fields)
        self._check_not_null(kind, row)
        with self._lock:
            state = self._load()
            self._check_unique(state, kind, row)
            self._check_foreign_keys(state, kind, row)
            new_id = state["seq"][kind.value] + 1
            state["seq"][kind.value] = new_id
            row["id"] = new_id
            state["tables"][kind.value].append(row)
            self._save(state)
        return new_id

    def update(self, kind, key, changes):
        check_fields(kind, changes)
        changes = {k: to_jsonable(v) for k, v in changes.items()}
        with self._lock:
            state = self._load()
            rows = state["tables"][kind.value]
            for i, row in enumerate(rows):
                if row["id"] != key:
                    continue
                if not changes:
                    return 1
                merged = {**row, **changes}
                self._check_not_null(kind, merged)
                self._check_unique(state, kind, merged)
                self._check_foreign_keys(state, kind, merged)
                rows[i] = merged
                self._save(state)
                return 1
        return 0

    def delete(self, kind, key):
        with self._lock:
            state = self._load()
            rows = state["tables"][kind.value]
            kept = [r for r in rows if r["id"] != key]
            if len(kept) == len(rows):
                return 0
            # cascade to dependents first, then drop the parent
            for child, (field, parent) in FOREIGN_KEYS.items():
                if parent == kind:
                    state["tables"][child.value] = [
                        r for r in state["tables"][child.value] if r.get(field) != key
                    ]
            state["tables"][kind.value] = kept
            self._save(state)
            return 1
