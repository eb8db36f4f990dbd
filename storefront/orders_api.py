from __future__ import annotations
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from .auth import Principal, require_admin
from .order_service import OrderService

router = APIRouter(prefix="/api/orders", tags=["orders"])


def get_orders(request: Request) -> OrderService:
    return request.app.state.orders


class OrderIn(BaseModel):
    # shape checks live in OrderService.submit
    fullName: Optional[Any] = None
    phone: Optional[Any] = None
    email: Optional[Any] = None
    address: Optional[Any] = None
    items: Optional[Any] = None
    notes: Optional[Any] = None


class OrderOut(BaseModel):
    id: int
    fullName: str
    phone: str
    email: str
    address: str
    notes: Optional[str]
    itemsJson: str
    totalPrice: float
    status: str
    createdAt: str


def order_out(o: Dict[str, Any]) -> OrderOut:
    return OrderOut(
        id=o["id"], fullName=o["full_name"], phone=o["phone"], email=o["email"],
        address=o["address"], notes=o.get("notes"), itemsJson=o["items_json"],
        totalPrice=o["total_price"], status=o["status"], createdAt=o["created_at"],
    )


@router.get("", response_model=List[OrderOut])
def list_orders(status: Optional[str] = Query(None), orders: OrderService = Depends(get_orders),
                admin: Principal = Depends(require_admin)):
    return [order_out(o) for o in orders.list_orders(status)]


@router.post("")
def submit_order(payload: OrderIn, orders: OrderService = Depends(get_orders)):
    contact = payload.model_dump(include={"fullName", "phone", "email", "address"})
    order_id = orders.submit(contact, payload.items, payload.notes)
    return {"message": "Order received", "id": order_id}


@router.get("/{order_id}", response_model=OrderOut)
def get_order(order_id: int, orders: OrderService = Depends(get_orders),
              admin: Principal = Depends(require_admin)):
    return order_out(orders.get(order_id))


@router.post("/{order_id}/deliver", response_model=OrderOut)
def deliver_order(order_id: int, orders: OrderService = Depends(get_orders),
                  admin: Principal = Depends(require_admin)):
    return order_out(orders.mark_delivered(order_id))


@router.post("/{order_id}/restore", response_model=OrderOut)
def restore_order(order_id: int, orders: OrderService = Depends(get_orders),
                  admin: Principal = Depends(require_admin)):
    return order_out(orders.restore(order_id))


@router.delete("/{order_id}")
def delete_order(order_id: int, orders: OrderService = Depends(get_orders),
                 admin: Principal = Depends(require_admin)):
    orders.delete_permanently(order_id)
    return {"message": "Order deleted"}
