from pydantic import BaseModel, Field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

class OrderItemIn(BaseModel):
    # Optional so that missing values are reported by order validation
    # together with every other problem in the payload
    product_id: Optional[int] = None
    product_name: Optional[str] = None
    quantity: Optional[int] = None
    price: Optional[Decimal] = None

class OrderPayload(BaseModel):
    order_number: Optional[str] = None
    customer_first_name: Optional[str] = None
    customer_last_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_city: Optional[str] = None
    shipping_postal_code: Optional[str] = None
    shipping_province: Optional[str] = None
    shipping_cost: Optional[Decimal] = Decimal("0")
    status: Optional[str] = None
    items: list[OrderItemIn] = Field(default_factory=list)

class OrderStatusUpdate(BaseModel):
    status: str

class OrderItemRead(BaseModel):
    id: int
    product_id: int
    product_name: str
    quantity: int
    price: float
    total_price: float
    class Config:
        from_attributes = True

class OrderRead(BaseModel):
    id: int
    order_number: str
    customer_first_name: str
    customer_last_name: str
    customer_email: str
    customer_phone: str
    shipping_address: str
    shipping_city: str
    shipping_postal_code: str
    shipping_province: str
    subtotal: float
    shipping_cost: float
    total: float
    status: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: list[OrderItemRead]
    class Config:
        from_attributes = True

class OrderStatistics(BaseModel):
    total_orders: int
    total_revenue: float
    average_order_value: float
    pending_orders: int
    processing_orders: int
    shipped_orders: int
    delivered_orders: int
    cancelled_orders: int

class ApiResponse(BaseModel):
    """Envelope wrapped around every response body."""
    success: bool
    message: str
    data: Optional[Any] = None
    error: Optional[Any] = None
    timestamp: datetime
