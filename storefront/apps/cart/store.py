"""Cart store: per-user cart mutations.

Each operation on a user's cart is one read-modify-write step performed
while holding that user's lock, so two requests for the same cart (two
browser tabs) cannot lose each other's update. Carts of different users
never contend.

Adding to the cart does not touch stock; stock is only taken at checkout
by the order assembler.
"""

import logging
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, Optional

from storefront.apps.catalog.domain import ProductCatalog
from storefront.errors import InvalidQuantity, ItemNotFound, ProductUnavailable
from storefront.locks import KeyedLocks

from .domain import Cart, CartItem, CartRepository, utcnow

logger = logging.getLogger("storefront.cart")


class CartCheckout:
    """Handle given to the order assembler while it holds a user's cart lock.

    Attributes:
        cart: Snapshot of the cart at the start of checkout.
    """

    def __init__(self, store: "CartStore", cart: Cart):
        self._store = store
        self.cart = cart

    def clear(self) -> None:
        """Empty the cart; the caller already holds the lock."""
        self._store._clear_locked(self.cart.user_id)


class CartStore:
    """Cart operations over a ``CartRepository``.

    Args:
        catalog: Product catalog used to validate adds and snapshot prices.
        repo: Cart persistence port.
        locks: Optional per-user lock registry.
    """

    def __init__(self, catalog: ProductCatalog, repo: CartRepository, locks: Optional[KeyedLocks] = None):
        self.catalog = catalog
        self.repo = repo
        self.locks = locks or KeyedLocks("cart")

    def _load(self, user_id: int) -> Cart:
        cart = self.repo.get(user_id)
        if cart is None:
            cart = Cart(user_id=user_id)
            self.repo.save(cart)
            logger.info("cart created", extra={"user_id": user_id})
        return cart

    def _store(self, cart: Cart) -> Cart:
        cart.updated_at = utcnow()
        self.repo.save(cart)
        return cart

    def get_cart(self, user_id: int) -> Cart:
        """Return the user's cart, creating an empty one on first access."""
        with self.locks.hold(user_id):
            return self._load(user_id)

    def add_item(self, user_id: int, product_id: int, quantity: int) -> Cart:
        """Add ``quantity`` units of a product, merging with an existing line.

        A new line snapshots the product's current effective price; merging
        into an existing line keeps the price that line was added at.

        Raises:
            InvalidQuantity: If ``quantity`` < 1.
            ProductUnavailable: If the product does not exist or is inactive.
        """
        if quantity < 1:
            raise InvalidQuantity("quantity must be >= 1", product_id=product_id)
        product = self.catalog.get_product(product_id)
        if product is None or not product.is_active:
            raise ProductUnavailable(f"Product {product_id} is not available", product_id=product_id)

        with self.locks.hold(user_id):
            cart = self._load(user_id)
            existing = cart.find(product_id)
            if existing is not None:
                merged = replace(existing, quantity=existing.quantity + quantity)
                cart.items = [merged if i.product_id == product_id else i for i in cart.items]
            else:
                cart.items.append(
                    CartItem(
                        product_id=product_id,
                        quantity=quantity,
                        unit_price_cents=product.unit_price_cents,
                        name=product.name,
                    )
                )
            cart = self._store(cart)

        logger.info("cart item added", extra={"user_id": user_id, "product_id": product_id, "quantity": quantity})
        return cart

    def update_item(self, user_id: int, product_id: int, quantity: int) -> Cart:
        """Set a line's quantity; 0 removes the line.

        Raises:
            InvalidQuantity: If ``quantity`` is negative.
            ItemNotFound: If the product is not in the cart.
        """
        if quantity < 0:
            raise InvalidQuantity("quantity must be >= 0", product_id=product_id)
        if quantity == 0:
            return self.remove_item(user_id, product_id)

        with self.locks.hold(user_id):
            cart = self._load(user_id)
            existing = cart.find(product_id)
            if existing is None:
                raise ItemNotFound(f"Product {product_id} is not in the cart", product_id=product_id)
            updated = replace(existing, quantity=quantity)
            cart.items = [updated if i.product_id == product_id else i for i in cart.items]
            cart = self._store(cart)

        logger.info("cart item updated", extra={"user_id": user_id, "product_id": product_id, "quantity": quantity})
        return cart

    def remove_item(self, user_id: int, product_id: int) -> Cart:
        """Remove a line.

        Raises:
            ItemNotFound: If the product is not in the cart.
        """
        with self.locks.hold(user_id):
            cart = self._load(user_id)
            if cart.find(product_id) is None:
                raise ItemNotFound(f"Product {product_id} is not in the cart", product_id=product_id)
            cart.items = [i for i in cart.items if i.product_id != product_id]
            cart = self._store(cart)

        logger.info("cart item removed", extra={"user_id": user_id, "product_id": product_id})
        return cart

    def clear(self, user_id: int) -> Cart:
        with self.locks.hold(user_id):
            return self._clear_locked(user_id)

    def _clear_locked(self, user_id: int) -> Cart:
        cart = self._load(user_id)
        if cart.is_empty:
            return cart
        cart.items = []
        cart = self._store(cart)
        logger.info("cart cleared", extra={"user_id": user_id})
        return cart

    @contextmanager
    def checkout(self, user_id: int) -> Iterator[CartCheckout]:
        """Hold the user's cart lock for a whole checkout attempt.

        Yields:
            CartCheckout: The cart snapshot plus a ``clear`` that does not
            re-acquire the lock.
        """
        with self.locks.hold(user_id):
            yield CartCheckout(self, self._load(user_id))
