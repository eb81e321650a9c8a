"""Pydantic schemas for the order endpoints."""

import re
import uuid
from dataclasses import asdict
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from .domain import Order, OrderStatus, ShippingDetails

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class CreateOrderIn(BaseModel):
    """Checkout body: contact and delivery data, all optional.

    Attributes:
        customer_email: Normalized to lowercase and checked for a basic
            ``local@domain.tld`` shape.
    """

    customer_name: str = Field(default="", max_length=200)
    customer_email: str = Field(default="", max_length=100)
    customer_phone: Optional[str] = Field(default=None, max_length=20)
    shipping_address: str = Field(default="", max_length=500)
    city: str = Field(default="", max_length=100)
    zip_code: str = Field(default="", max_length=20)
    payment_method: str = Field(default="", max_length=50)
    notes: Optional[str] = Field(default=None, max_length=500)

    @field_validator("customer_email")
    @classmethod
    def validate_email(cls, v: str) -> str:
        """Lowercase the email and reject obviously malformed values.

        Raises:
            ValueError: When a non-empty value is not an email address.
        """
        v2 = v.strip().lower()
        if v2 and not EMAIL_RE.match(v2):
            raise ValueError("Invalid email address")
        return v2

    def shipping(self) -> Optional[ShippingDetails]:
        """Domain ``ShippingDetails``, or None when nothing was provided."""
        data = self.model_dump(exclude={"notes"})
        if not any(data.values()):
            return None
        return ShippingDetails(**data)


class UpdateStatusIn(BaseModel):
    status: OrderStatus
    notes: Optional[str] = Field(default=None, max_length=500)


class OrderItemOut(BaseModel):
    product_id: int
    name: str
    quantity: int
    unit_price_cents: int
    subtotal_cents: int


class OrderOut(BaseModel):
    id: uuid.UUID
    order_number: str
    user_id: int
    status: OrderStatus
    items: List[OrderItemOut]
    total_cents: int
    total_items: int
    customer_name: Optional[str] = None
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    payment_method: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None

    @classmethod
    def from_domain(cls, order: Order) -> "OrderOut":
        ship = asdict(order.shipping) if order.shipping else {}
        return cls(
            id=order.id,
            order_number=order.order_number,
            user_id=order.user_id,
            status=order.status,
            items=[
                OrderItemOut(
                    product_id=i.product_id,
                    name=i.name,
                    quantity=i.quantity,
                    unit_price_cents=i.unit_price_cents,
                    subtotal_cents=i.subtotal_cents,
                )
                for i in order.items
            ],
            total_cents=order.total_cents,
            total_items=order.total_items,
            notes=order.notes,
            created_at=order.created_at,
            updated_at=order.updated_at,
            shipped_at=order.shipped_at,
            delivered_at=order.delivered_at,
            **ship,
        )


class OrderListOut(BaseModel):
    count: int
    results: List[OrderOut]
