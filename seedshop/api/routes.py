from fastapi import APIRouter, Depends, HTTPException, Query
from seedshop.infrastructure.db import Database, get_db
from seedshop.application.service import OrderService
from seedshop.application.pricing import generate_order_number
from seedshop.application.schemas import OrderPayload, OrderRead, OrderStatusUpdate
from .responses import success_response

router = APIRouter(prefix="/orders", tags=["orders"])

def _serialize(orders) -> list[OrderRead]:
    return [OrderRead.model_validate(order) for order in orders]

@router.get("")
def list_orders(db: Database = Depends(get_db)):
    return success_response("Orders retrieved successfully", _serialize(OrderService(db).list_orders()))

# Fixed paths are registered before /{order_id} so they are not parsed as ids

@router.get("/statistics")
def order_statistics(db: Database = Depends(get_db)):
    return success_response("Order statistics retrieved successfully", OrderService(db).statistics())

@router.get("/generate-number")
def new_order_number():
    return success_response("Order number generated successfully", {"order_number": generate_order_number()})

@router.get("/status/{status}")
def orders_by_status(status: str, db: Database = Depends(get_db)):
    orders = OrderService(db).list_by_status(status)
    return success_response(f"Orders with status '{status}' retrieved successfully", _serialize(orders))

@router.get("/customer")
def orders_by_customer(email: str = Query("", description="Customer email"), db: Database = Depends(get_db)):
    if not email.strip():
        raise HTTPException(status_code=400, detail="Customer email is required")
    orders = OrderService(db).list_by_customer_email(email)
    return success_response("Customer orders retrieved successfully", _serialize(orders))

@router.get("/number/{order_number}")
def get_order_by_number(order_number: str, db: Database = Depends(get_db)):
    order = OrderService(db).get_by_number(order_number)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return success_response("Order retrieved successfully", OrderRead.model_validate(order))

@router.get("/{order_id}")
def get_order(order_id: int, db: Database = Depends(get_db)):
    order = OrderService(db).get(order_id)
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return success_response("Order retrieved successfully", OrderRead.model_validate(order))

@router.post("", status_code=201)
def create_order(payload: OrderPayload, db: Database = Depends(get_db)):
    order = OrderService(db).create(payload)
    return success_response("Order created successfully", OrderRead.model_validate(order), status_code=201)

@router.put("/{order_id}")
def update_order(order_id: int, payload: OrderPayload, db: Database = Depends(get_db)):
    order = OrderService(db).replace(order_id, payload)
    return success_response("Order updated successfully", OrderRead.model_validate(order))

@router.put("/{order_id}/status")
def update_order_status(order_id: int, payload: OrderStatusUpdate, db: Database = Depends(get_db)):
    order = OrderService(db).update_status(order_id, payload.status)
    return success_response("Order status updated successfully", OrderRead.model_validate(order))

@router.delete("/{order_id}")
def delete_order(order_id: int, db: Database = Depends(get_db)):
    OrderService(db).delete(order_id)
    return success_response("Order deleted successfully", {"order_id": order_id})
