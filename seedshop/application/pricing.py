"""Order validation, total calculation and order-number generation."""

from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional
import random
import re
import time

from seedshop.domain.models import OrderStatus
from .schemas import OrderItemIn, OrderPayload

CENTS = Decimal("0.01")
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

def round_money(value) -> Decimal:
    """Round to 2 decimal places, half away from zero."""
    if isinstance(value, float):
        # 19.995 must round like the literal, not its binary approximation
        value = repr(value)
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)

def unit_price(item: OrderItemIn) -> Decimal:
    """Unit price as stored: rounded half-up to cents."""
    return round_money(item.price or 0)

def line_total(item: OrderItemIn) -> Decimal:
    return unit_price(item) * (item.quantity or 0)

def calculate_totals(items: Iterable[OrderItemIn], shipping_cost) -> tuple[Decimal, Decimal]:
    """Return ``(subtotal, total)`` for a list of order lines.

    Lines are priced at the stored unit price, so every line satisfies
    ``total_price == price * quantity`` and the subtotal is their exact sum.
    Missing prices or quantities count as zero; validation reports them.
    """
    subtotal = round_money(sum((line_total(item) for item in items), Decimal("0")))
    total = round_money(subtotal + round_money(shipping_cost or 0))
    return subtotal, total

def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email.strip()))

def normalize_status(status: Optional[str]) -> Optional[str]:
    if status is None:
        return None
    return status.strip().lower()

def _blank(value: Optional[str]) -> bool:
    return value is None or value.strip() == ""

def validate_order(payload: OrderPayload, order_number: Optional[str] = None) -> list[str]:
    """Collect every problem with an order payload.

    ``order_number`` is the number the order will be stored under; when it is
    ``None`` the number is taken from the payload and only checked if given.
    """
    errors = []
    number = order_number if order_number is not None else payload.order_number

    if number is not None and _blank(number):
        errors.append("Order number is required")

    if _blank(payload.customer_first_name):
        errors.append("Customer first name is required")
    if _blank(payload.customer_last_name):
        errors.append("Customer last name is required")

    if _blank(payload.customer_email):
        errors.append("Customer email is required")
    elif not is_valid_email(payload.customer_email):
        errors.append("Valid customer email is required")

    if _blank(payload.shipping_address):
        errors.append("Shipping address is required")

    if payload.shipping_cost is not None and payload.shipping_cost < 0:
        errors.append("Shipping cost cannot be negative")

    if not payload.items:
        errors.append("Order must contain at least one item")
    else:
        for index, item in enumerate(payload.items, start=1):
            if not item.product_id:
                errors.append(f"Item {index}: Product ID is required")
            if _blank(item.product_name):
                errors.append(f"Item {index}: Product name is required")
            if item.quantity is None or item.quantity <= 0:
                errors.append(f"Item {index}: Valid quantity is required (must be greater than 0)")
            if item.price is None or item.price <= 0:
                errors.append(f"Item {index}: Valid price is required (must be greater than 0)")

    _, total = calculate_totals(payload.items, payload.shipping_cost)
    if total <= 0:
        errors.append("Order total must be greater than 0")

    status = normalize_status(payload.status)
    if status is not None and status not in OrderStatus.values():
        errors.append(status_error_message())

    return errors

def status_error_message() -> str:
    return f"Invalid status. Must be one of: {', '.join(OrderStatus.values())}"

def generate_order_number() -> str:
    """Generate an order number in format ORD-<epoch millis>-<3 digits>"""
    timestamp = int(time.time() * 1000)
    return f"ORD-{timestamp}-{random.randint(0, 999):03d}"
