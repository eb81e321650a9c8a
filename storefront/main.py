"""Storefront HTTP API built with FastAPI.

The routes are thin: they validate bodies with Pydantic, read the trusted
``X-User-Id`` header set by the authentication gateway, call the
``Storefront`` facade and map the ``Result`` error kind to a status code.
No business rule lives here.
"""

import uuid
from typing import Annotated, Optional

from fastapi import Depends, FastAPI, Header, Request
from fastapi.responses import JSONResponse, Response

from storefront.apps.cart.schemas import AddItemIn, CartOut, UpdateItemIn
from storefront.apps.orders.domain import OrderStatus
from storefront.apps.orders.schemas import CreateOrderIn, OrderListOut, OrderOut, UpdateStatusIn
from storefront.errors import ErrorKind, Result
from storefront.gateway.logging_filters import configure_logging
from storefront.gateway.middleware import add_request_id
from storefront.providers import build_storefront
from storefront.service import Storefront

STATUS_BY_KIND = {
    ErrorKind.INVALID_QUANTITY: 422,
    ErrorKind.ITEM_NOT_FOUND: 404,
    ErrorKind.PRODUCT_UNAVAILABLE: 422,
    ErrorKind.EMPTY_CART: 400,
    ErrorKind.INSUFFICIENT_STOCK: 422,
    ErrorKind.INVALID_STATE_TRANSITION: 409,
    ErrorKind.ALREADY_RESOLVED: 409,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PERSISTENCE_FAILURE: 503,
}

UserId = Annotated[int, Header(alias="X-User-Id")]


def error_response(result: Result) -> JSONResponse:
    """Map a failed ``Result`` to ``{"detail": KIND, ...}`` with its status."""
    body = {"detail": result.error.value, "message": result.message}
    if result.product_id is not None:
        body["product_id"] = result.product_id
    return JSONResponse(body, status_code=STATUS_BY_KIND.get(result.error, 400))


def get_storefront(request: Request) -> Storefront:
    return request.app.state.storefront


Shop = Annotated[Storefront, Depends(get_storefront)]


def create_app(storefront: Optional[Storefront] = None) -> FastAPI:
    """Build the API around ``storefront``.

    Args:
        storefront: Wired facade; when omitted one is built from settings on
            startup.

    Returns:
        FastAPI: The application.
    """
    app = FastAPI(title="Storefront Service")
    app.state.storefront = storefront
    app.middleware("http")(add_request_id)

    @app.on_event("startup")
    def _startup():
        configure_logging()
        if app.state.storefront is None:
            app.state.storefront = build_storefront()

    @app.get("/health")
    def health():
        return {"ok": True}

    # ---- cart ----

    @app.get("/api/cart", response_model=CartOut)
    def get_cart(user_id: UserId, shop: Shop):
        r = shop.get_cart(user_id)
        return CartOut.from_domain(r.value) if r.ok else error_response(r)

    @app.post("/api/cart/items", response_model=CartOut)
    def add_item(body: AddItemIn, user_id: UserId, shop: Shop):
        r = shop.add_item(user_id, body.product_id, body.quantity)
        return CartOut.from_domain(r.value) if r.ok else error_response(r)

    @app.put("/api/cart/items/{product_id}", response_model=CartOut)
    def update_item(product_id: int, body: UpdateItemIn, user_id: UserId, shop: Shop):
        r = shop.update_item(user_id, product_id, body.quantity)
        return CartOut.from_domain(r.value) if r.ok else error_response(r)

    @app.delete("/api/cart/items/{product_id}", response_model=CartOut)
    def remove_item(product_id: int, user_id: UserId, shop: Shop):
        r = shop.remove_item(user_id, product_id)
        return CartOut.from_domain(r.value) if r.ok else error_response(r)

    @app.delete("/api/cart", response_model=CartOut)
    def clear_cart(user_id: UserId, shop: Shop):
        r = shop.clear_cart(user_id)
        return CartOut.from_domain(r.value) if r.ok else error_response(r)

    # ---- orders ----

    @app.post("/api/orders", response_model=OrderOut, status_code=201)
    def create_order(user_id: UserId, shop: Shop, body: Optional[CreateOrderIn] = None):
        body = body or CreateOrderIn()
        r = shop.create_order(user_id, shipping=body.shipping(), notes=body.notes)
        return OrderOut.from_domain(r.value) if r.ok else error_response(r)

    @app.get("/api/orders", response_model=OrderListOut)
    def list_orders(user_id: UserId, shop: Shop, status: Optional[OrderStatus] = None):
        r = shop.list_orders(user_id=user_id, status=status)
        if not r.ok:
            return error_response(r)
        return OrderListOut(count=len(r.value), results=[OrderOut.from_domain(o) for o in r.value])

    @app.get("/api/orders/by-number/{order_number}", response_model=OrderOut)
    def get_order_by_number(order_number: str, user_id: UserId, shop: Shop):
        r = shop.get_order_by_number(order_number)
        if r.ok and r.value.user_id != user_id:
            return JSONResponse({"detail": ErrorKind.NOT_FOUND.value}, status_code=404)
        return OrderOut.from_domain(r.value) if r.ok else error_response(r)

    @app.get("/api/orders/{order_id}", response_model=OrderOut)
    def get_order(order_id: uuid.UUID, user_id: UserId, shop: Shop):
        r = shop.get_order(order_id)
        if r.ok and r.value.user_id != user_id:
            return JSONResponse({"detail": ErrorKind.NOT_FOUND.value}, status_code=404)
        return OrderOut.from_domain(r.value) if r.ok else error_response(r)

    @app.patch("/api/orders/{order_id}/status", response_model=OrderOut)
    def update_status(order_id: uuid.UUID, body: UpdateStatusIn, shop: Shop):
        r = shop.update_status(order_id, body.status, notes=body.notes)
        return OrderOut.from_domain(r.value) if r.ok else error_response(r)

    @app.delete("/api/orders/{order_id}", status_code=204)
    def delete_order(order_id: uuid.UUID, shop: Shop):
        r = shop.delete_order(order_id)
        return Response(status_code=204) if r.ok else error_response(r)

    return app


app = create_app()
