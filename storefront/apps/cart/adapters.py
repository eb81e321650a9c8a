"""In-process cart repository for tests and local development."""

import copy
from typing import Dict, Optional

from .domain import Cart, CartRepository


class InMemoryCartRepository(CartRepository):
    """Stores deep copies so callers never share state with the store.

    Per-user serialization is the ``CartStore``'s job; this class only keeps
    each ``get``/``save`` a whole-object swap.
    """

    def __init__(self) -> None:
        self._carts: Dict[int, Cart] = {}

    def get(self, user_id: int) -> Optional[Cart]:
        cart = self._carts.get(user_id)
        return copy.deepcopy(cart) if cart is not None else None

    def save(self, cart: Cart) -> None:
        self._carts[cart.user_id] = copy.deepcopy(cart)
