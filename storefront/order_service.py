from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional

from .errors import InvalidField, InvalidTransition, NotFound
from .models import ORDER_ACTIVE, ORDER_ARCHIVED, ORDER_STATUSES
from .record_store import Kind, Record, RecordStore
from .validation import clean_text, is_valid_email, is_valid_phone, parse_number

logger = logging.getLogger(__name__)

# request field -> column
CONTACT_FIELDS = (
    ("fullName", "full_name"),
    ("phone", "phone"),
    ("email", "email"),
    ("address", "address"),
)


def load_items(order: Record) -> List[Dict[str, Any]]:
    return json.loads(order["items_json"]).get("items", [])


def _snapshot(items: List[Any]) -> List[Dict[str, Any]]:
    out = []
    for raw in items:
        if not isinstance(raw, dict):
            raise InvalidField("items", "Each item must be an object")
        name = clean_text(raw.get("name"))
        price = parse_number(raw.get("price"))
        if not name:
            raise InvalidField("items", "Each item needs a name")
        if price is None or price < 0:
            raise InvalidField("items", f"Invalid price for {name}")
        out.append({"id": raw.get("id"), "name": name, "price": price})
    return out


class OrderService:
    """Order intake and the active <-> archived lifecycle.

    Delivering an archived order or restoring an active one is a no-op.
    Deletion is not a state: it removes the row from either state.
    """

    def __init__(self, store: RecordStore):
        self.store = store

    def submit(self, contact: Dict[str, Any], items: Optional[List[Any]], notes: Any = None) -> int:
        row: Dict[str, Any] = {}
        for field, column in CONTACT_FIELDS:
            raw = contact.get(field)
            if raw is not None and not isinstance(raw, str):
                raise InvalidField(field, f"{field} must be text")
            value = clean_text(raw)
            if not value:
                raise InvalidField(field, "Missing required order data")
            row[column] = value
        if not isinstance(items, list) or not items:
            raise InvalidField("items", "Missing required order data")
        if not is_valid_email(row["email"]):
            raise InvalidField("email", "Invalid email address format")
        if not is_valid_phone(row["phone"]):
            raise InvalidField("phone", "Invalid phone number format")
        if notes is not None and not isinstance(notes, str):
            raise InvalidField("notes", "notes must be text")

        snapshot = _snapshot(items)
        row.update(
            notes=clean_text(notes) or "",
            items_json=json.dumps({"items": snapshot}),
            total_price=sum(i["price"] for i in snapshot),
            status=ORDER_ACTIVE,
        )
        order_id = self.store.insert(Kind.ORDERS, row)
        logger.info("order %s received (%d items, total %.2f)", order_id, len(snapshot), row["total_price"])
        return order_id

    def get(self, order_id: int) -> Record:
        order = self.store.get(Kind.ORDERS, order_id)
        if order is None:
            raise NotFound("Order not found")
        return order

    def list_orders(self, status: Optional[str] = None) -> List[Record]:
        if status is None:
            return self.store.query(Kind.ORDERS)
        if status not in ORDER_STATUSES:
            raise InvalidField("status", f"Unknown order status {status!r}")
        return self.store.query(Kind.ORDERS, {"status": status})

    def list_active(self) -> List[Record]:
        return self.list_orders(ORDER_ACTIVE)

    def list_archived(self) -> List[Record]:
        return self.list_orders(ORDER_ARCHIVED)

    def _move(self, order_id: int, source: str, target: str) -> Record:
        order = self.get(order_id)
        if order["status"] == target:
            return order
        if order["status"] != source:
            raise InvalidTransition(f"Order {order_id} is {order['status']!r}")
        self.store.update(Kind.ORDERS, order_id, {"status": target})
        logger.info("order %s: %s -> %s", order_id, source, target)
        return {**order, "status": target}

    def mark_delivered(self, order_id: int) -> Record:
        return self._move(order_id, ORDER_ACTIVE, ORDER_ARCHIVED)

    def restore(self, order_id: int) -> Record:
        return self._move(order_id, ORDER_ARCHIVED, ORDER_ACTIVE)

    def delete_permanently(self, order_id: int) -> None:
        if self.store.delete(Kind.ORDERS, order_id) == 0:
            raise NotFound("Order not found")
        logger.info("order %s deleted", order_id)
