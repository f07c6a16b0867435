"""
Client cart as a projection of the backend cart.

Nothing is updated optimistically. Each mutation goes to the backend and the
local entries are rebuilt from the snapshot it returns, so the local view is
never more than one in-flight request behind. A failed mutation leaves the
entries as they were, notifies the user and re-raises: callers must treat
the operation as not having happened.
"""
import logging
from typing import List, Optional

from errors import NotAuthenticatedError, StorefrontError
from schemas import CartEntry, CartSnapshot, Product, map_item_to_product, parse_response
from session import Session
from ui import Notifier

logger = logging.getLogger(__name__)


def map_cart_response(snapshot: CartSnapshot) -> List[CartEntry]:
    entries = []
    for line in snapshot.items:
        if not line.item or not line.item.id or not line.item.type:
            continue
        entries.append(CartEntry(
            id=f"{snapshot.id}-{line.item.id}",
            product_id=line.item.id,
            quantity=line.quantity,
            product=map_item_to_product(line.item),
        ))
    return entries


class CartSynchronizer:
    def __init__(self, api, session: Session, notifier: Notifier):
        self.api = api
        self.session = session
        self.notifier = notifier
        self._entries: List[CartEntry] = []

    @property
    def entries(self) -> List[CartEntry]:
        return list(self._entries)

    @property
    def total(self) -> float:
        return sum(e.product.price * e.quantity for e in self._entries)

    @property
    def item_count(self) -> int:
        return sum(e.quantity for e in self._entries)

    @property
    def shipping_charges(self) -> List[float]:
        return [e.product.shipping_charge or 0 for e in self._entries]

    @property
    def cod_allowed(self) -> bool:
        return all(e.product.cod_available is not False for e in self._entries)

    def is_empty(self) -> bool:
        return not self._entries

    def contains(self, product_id: str) -> bool:
        return any(e.product_id == product_id for e in self._entries)

    def find(self, product_id: str) -> Optional[CartEntry]:
        return next((e for e in self._entries if e.product_id == product_id), None)

    def _apply(self, body) -> List[CartEntry]:
        self._entries = map_cart_response(parse_response(CartSnapshot, body))
        return self.entries

    def _require_session(self, action: str) -> None:
        if not self.session.is_authenticated:
            raise NotAuthenticatedError(f"Cannot {action} when not authenticated.")

    def _mutate(self, method: str, path: str, json=None) -> List[CartEntry]:
        try:
            return self._apply(self.api.request(method, path, json=json))
        except StorefrontError:
            self.notifier.notify("Cart update failed", "Please try again.", variant="destructive")
            raise

    def load(self) -> List[CartEntry]:
        if not self.session.is_authenticated:
            self._entries = []
            return self.entries
        try:
            return self._apply(self.api.get("/cart"))
        except StorefrontError as exc:
            logger.warning(f"Cart load failed, keeping {len(self._entries)} cached entries: {exc}")
            self.notifier.notify("Unable to load cart", "Please refresh the page or try again.")
            return self.entries

    def add(self, product: Product, quantity: int = 1) -> List[CartEntry]:
        self._require_session("add items to cart")
        return self._mutate("POST", "/cart", {"itemId": product.id, "quantity": quantity})

    def remove(self, product_id: str) -> List[CartEntry]:
        self._require_session("remove items from cart")
        return self._mutate("DELETE", f"/cart/{product_id}")

    def set_quantity(self, product_id: str, quantity: int) -> List[CartEntry]:
        if quantity < 1:
            return self.remove(product_id)
        self._require_session("update cart quantity")
        return self._mutate("PUT", f"/cart/{product_id}", {"quantity": quantity})

    def clear(self) -> List[CartEntry]:
        if not self.session.is_authenticated:
            self._entries = []
            return self.entries
        return self._mutate("DELETE", "/cart")

    def reset(self) -> None:
        """Drop local entries without touching the backend (sign-out)."""
        self._entries = []
