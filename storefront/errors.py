"""Error kinds, domain exceptions and the boundary result type.

Inside the core every failure is raised as a ``ShopError`` subclass that
carries an ``ErrorKind``. Callers outside the core (the HTTP layer, scripts)
go through ``storefront.service.Storefront`` which converts those exceptions
into ``Result`` values so a transport can map ``Result.error`` to a response
code without catching anything.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Stable error codes surfaced to callers."""

    INVALID_QUANTITY = "INVALID_QUANTITY"
    ITEM_NOT_FOUND = "ITEM_NOT_FOUND"
    PRODUCT_UNAVAILABLE = "PRODUCT_UNAVAILABLE"
    EMPTY_CART = "EMPTY_CART"
    INSUFFICIENT_STOCK = "INSUFFICIENT_STOCK"
    INVALID_STATE_TRANSITION = "INVALID_STATE_TRANSITION"
    ALREADY_RESOLVED = "ALREADY_RESOLVED"
    PERSISTENCE_FAILURE = "PERSISTENCE_FAILURE"
    NOT_FOUND = "NOT_FOUND"


class ShopError(Exception):
    """Base class for every error raised by the storefront core.

    Attributes:
        kind: The ``ErrorKind`` code of the failure.
        message: Human readable description.
        product_id: Offending product, when the failure concerns one.
    """

    kind: ErrorKind = ErrorKind.PERSISTENCE_FAILURE

    def __init__(self, message: str = "", product_id: Optional[int] = None):
        super().__init__(message or self.kind.value)
        self.message = message or self.kind.value
        self.product_id = product_id


class InvalidQuantity(ShopError):
    kind = ErrorKind.INVALID_QUANTITY


class ItemNotFound(ShopError):
    kind = ErrorKind.ITEM_NOT_FOUND


class ProductUnavailable(ShopError):
    kind = ErrorKind.PRODUCT_UNAVAILABLE


class EmptyCart(ShopError):
    kind = ErrorKind.EMPTY_CART


class InsufficientStock(ShopError):
    """Raised when a product cannot cover the requested quantity."""

    kind = ErrorKind.INSUFFICIENT_STOCK

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: have={available}, need={requested}",
            product_id=product_id,
        )
        self.requested = requested
        self.available = available


class InvalidStateTransition(ShopError):
    kind = ErrorKind.INVALID_STATE_TRANSITION


class AlreadyResolved(ShopError):
    """A reservation token was already committed or released."""

    kind = ErrorKind.ALREADY_RESOLVED


class PersistenceFailure(ShopError):
    kind = ErrorKind.PERSISTENCE_FAILURE


class NotFound(ShopError):
    kind = ErrorKind.NOT_FOUND


@dataclass(frozen=True)
class Result(Generic[T]):
    """Outcome of a boundary operation: either a value or an error kind.

    Attributes:
        value: Operation result when ``ok`` is True.
        error: ``ErrorKind`` when the operation failed, else None.
        message: Error description when the operation failed.
        product_id: Offending product for product-scoped failures.
    """

    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    message: Optional[str] = None
    product_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T) -> "Result[T]":
        return cls(value=value)

    @classmethod
    def failure(cls, exc: ShopError) -> "Result[T]":
        return cls(error=exc.kind, message=exc.message, product_id=exc.product_id)
