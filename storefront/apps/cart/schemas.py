"""Pydantic schemas for the cart endpoints.

Quantities are not range-checked here: the cart store owns
that rule and reports it as ``INVALID_QUANTITY``.
"""

from typing import List

from pydantic import BaseModel, Field

from .domain import Cart


class AddItemIn(BaseModel):
    """Body of ``POST /api/cart/items``."""

    product_id: int = Field(gt=0)
    quantity: int = 1


class UpdateItemIn(BaseModel):
    """Body of ``PUT /api/cart/items/{product_id}``; 0 removes the line."""

    quantity: int


class CartItemOut(BaseModel):
    product_id: int
    name: str
    quantity: int
    unit_price_cents: int
    subtotal_cents: int


class CartOut(BaseModel):
    user_id: int
    items: List[CartItemOut]
    total_cents: int
    total_items: int

    @classmethod
    def from_domain(cls, cart: Cart) -> "CartOut":
        return cls(
            user_id=cart.user_id,
            items=[
                CartItemOut(
                    product_id=i.product_id,
                    name=i.name,
                    quantity=i.quantity,
                    unit_price_cents=i.unit_price_cents,
                    subtotal_cents=i.subtotal_cents,
                )
                for i in cart.items
            ],
            total_cents=cart.total_cents,
            total_items=cart.total_items,
        )
