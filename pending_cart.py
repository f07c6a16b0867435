"""
Single pending add-to-cart intent, kept across a sign-in redirect.

Guests cannot mutate a cart. When one tries, the intent is stashed here, the
user signs in, and the shell consumes the intent exactly once to finish the
add. There is one slot: saving again replaces whatever was there.

Everything here is best-effort. A storage failure never propagates; it just
means there is no pending action.
"""
import json
import logging
import time
from typing import Optional

from config import PENDING_CART_KEY
from schemas import PendingCartAction
from storage import KeyValueStorage

logger = logging.getLogger(__name__)


class PendingCartStore:
    def __init__(self, storage: KeyValueStorage, key: str = PENDING_CART_KEY):
        self.storage = storage
        self.key = key

    def save(self, product_id: str, quantity: int, return_to: Optional[str] = None) -> Optional[PendingCartAction]:
        try:
            action = PendingCartAction(
                product_id=product_id,
                quantity=quantity,
                return_to=return_to,
                created_at=int(time.time() * 1000),
            )
            self.storage.set(self.key, json.dumps(action.to_wire()))
            return action
        except Exception as exc:
            logger.debug(f"Pending cart action not saved: {exc}")
            return None

    def get(self) -> Optional[PendingCartAction]:
        try:
            raw = self.storage.get(self.key)
            if not raw:
                return None
            return PendingCartAction.model_validate(json.loads(raw))
        except Exception as exc:
            logger.debug(f"Ignoring pending cart action: {exc}")
            return None

    def clear(self) -> None:
        try:
            self.storage.remove(self.key)
        except Exception as exc:
            logger.debug(f"Pending cart action not cleared: {exc}")

    def consume(self) -> Optional[PendingCartAction]:
        action = self.get()
        if action is not None:
            self.clear()
        return action
