"""
Application shell for the customer storefront and the admin back office.

The shell owns the wiring: one storage, one session per surface, the API
client, cart, payments and checkout. It is also the only place that reacts
to session expiry by routing to sign-in.
"""
import logging
from typing import List, Optional

import httpx

from api_client import ApiClient
from cart import CartSynchronizer
from checkout import Checkout
from config import CART_PATH
from errors import ApiError, OrderStatusError, StorefrontError
from orders import ACTION_LABELS, AdminOrders, CustomerOrders, OrderPage, StatusLike, next_status
from payment import GatewayScript, PaymentGatewayBridge
from pending_cart import PendingCartStore
from schemas import (
    Address,
    AuthResponse,
    Item,
    ItemPage,
    Order,
    Product,
    UserProfile,
    map_item_to_product,
    parse_response,
)
from session import ADMIN_SCOPE, CUSTOMER_SCOPE, Session, SessionExpired, refresh_profile
from storage import KeyValueStorage, MemoryStorage
from ui import Navigator, Notifier

logger = logging.getLogger(__name__)


def _no_gateway():
    return None


class Storefront:
    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        http: Optional[httpx.Client] = None,
        gateway: Optional[GatewayScript] = None,
        notifier: Optional[Notifier] = None,
        navigator: Optional[Navigator] = None,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self.notifier = notifier or Notifier()
        self.navigator = navigator or Navigator()
        self.session = Session(self.storage, CUSTOMER_SCOPE)
        self.api = ApiClient(self.session, http)
        self.pending = PendingCartStore(self.storage)
        self.cart = CartSynchronizer(self.api, self.session, self.notifier)
        self.orders = CustomerOrders(self.api)
        self.payments = PaymentGatewayBridge(
            self.api,
            gateway or GatewayScript(_no_gateway),
            self.cart,
            self.notifier,
            self.navigator,
        )
        self.session.subscribe(self._on_session_expired)

    # ----------------------- Auth -----------------------
    @property
    def user(self) -> Optional[UserProfile]:
        return self.session.profile

    def _start_session(self, auth: AuthResponse) -> UserProfile:
        self.session.sign_in(auth.token, auth.user)
        self.cart.load()
        self.resume_pending_cart_action()
        return auth.user

    def sign_in(self, email: str, password: str) -> Optional[UserProfile]:
        try:
            auth = parse_response(AuthResponse, self.api.post("/auth/login", {"email": email, "password": password}))
        except StorefrontError as exc:
            message = exc.user_message if isinstance(exc, ApiError) else "Please try again."
            self.notifier.notify("Sign in failed", message, variant="destructive")
            return None
        return self._start_session(auth)

    def register(self, name: str, email: str, password: str, phone: str = "", address: Optional[Address] = None) -> Optional[UserProfile]:
        payload = {"name": name, "email": email, "phone": phone, "password": password}
        if address is not None:
            payload["address"] = address.to_wire(exclude_none=True)
        try:
            auth = parse_response(AuthResponse, self.api.post("/auth/register", payload))
        except StorefrontError as exc:
            message = exc.user_message if isinstance(exc, ApiError) else "Please try again."
            self.notifier.notify("Registration failed", message, variant="destructive")
            return None
        return self._start_session(auth)

    def sign_out(self) -> None:
        self.session.clear()
        self.cart.reset()
        self.navigator.go("/")

    def refresh_profile(self) -> Optional[UserProfile]:
        if not self.session.is_authenticated:
            return None
        return refresh_profile(self.api, self.session)

    def _on_session_expired(self, event: SessionExpired) -> None:
        self.cart.reset()
        self.notifier.notify("Session expired", "Please sign in again.")
        self.navigator.go(event.sign_in_path)

    # ----------------------- Catalog -----------------------
    def get_product(self, product_id: str) -> Product:
        item = parse_response(Item, self.api.get(f"/items/{product_id}"))
        if not item.id or not item.type:
            raise ValueError(f"Invalid product {product_id}")
        return map_item_to_product(item)

    def list_products(self, item_type: Optional[str] = None, page: int = 1, limit: int = 20) -> List[Product]:
        params = {"page": page, "limit": limit}
        if item_type:
            params["type"] = item_type
        page_body = parse_response(ItemPage, self.api.get("/items", params=params))
        return [map_item_to_product(i) for i in page_body.data if i.id]

    # ----------------------- Cart -----------------------
    def add_to_cart(self, product: Product, quantity: int = 1, return_to: Optional[str] = None) -> bool:
        """
        Add from a product page. Guests are sent to sign in with the intent
        saved; it is replayed by ``resume_pending_cart_action`` afterwards.
        """
        if self.cart.contains(product.id):
            self.navigator.go(CART_PATH)
            return False
        if not self.session.is_authenticated:
            self.pending.save(product.id, quantity, return_to or self.navigator.location)
            self.notifier.notify("Sign in required", "Please sign in to add items to your cart.")
            self.navigator.go(self.session.scope.sign_in_path)
            return False
        try:
            self.cart.add(product, quantity)
        except StorefrontError:
            return False
        self.notifier.notify("Added to cart", f"{quantity} x {product.name} added to your cart.")
        return True

    def resume_pending_cart_action(self) -> bool:
        action = self.pending.consume()
        if action is None:
            return False
        try:
            product = self.get_product(action.product_id)
            self.cart.add(product, action.quantity)
        except (StorefrontError, ValueError) as exc:
            logger.warning(f"Could not restore pending cart action for {action.product_id}: {exc}")
            self.notifier.notify("Could not restore cart item", "Please try adding the product to your cart again.")
            return False
        self.notifier.notify("Added to cart", f"{action.quantity} x {product.name} added to your cart.")
        self.navigator.go(action.return_to or CART_PATH)
        return True

    # ----------------------- Checkout -----------------------
    def begin_checkout(self) -> Optional[Checkout]:
        return Checkout.begin(self.api, self.session, self.cart, self.payments, self.notifier, self.navigator)

    def order_history(self) -> List[Order]:
        try:
            return self.orders.list()
        except StorefrontError as exc:
            logger.warning(f"Order history unavailable: {exc}")
            self.notifier.notify("Unable to load orders", "Please try again.")
            return []


class AdminConsole:
    def __init__(
        self,
        storage: Optional[KeyValueStorage] = None,
        http: Optional[httpx.Client] = None,
        notifier: Optional[Notifier] = None,
        navigator: Optional[Navigator] = None,
    ):
        self.storage = storage if storage is not None else MemoryStorage()
        self.notifier = notifier or Notifier()
        self.navigator = navigator or Navigator()
        self.session = Session(self.storage, ADMIN_SCOPE)
        self.api = ApiClient(self.session, http)
        self.orders = AdminOrders(self.api)
        self.session.subscribe(self._on_session_expired)

    def login(self, username: str, password: str) -> bool:
        try:
            body = self.api.post("/admin/login", {"username": username, "password": password})
        except StorefrontError as exc:
            message = exc.user_message if isinstance(exc, ApiError) else "Please try again."
            self.notifier.notify("Login failed", message, variant="destructive")
            return False
        token = (body or {}).get("token")
        if not token:
            self.notifier.notify("Login failed", "No token received from server", variant="destructive")
            return False
        self.session.sign_in(token)
        self.navigator.go("/admin")
        return True

    def logout(self) -> None:
        self.session.clear()
        self.navigator.go(self.session.scope.sign_in_path)

    def _on_session_expired(self, event: SessionExpired) -> None:
        self.navigator.go(event.sign_in_path)

    def list_orders(self, page: int = 1, limit: int = 10, status: Optional[StatusLike] = None) -> OrderPage:
        return self.orders.list(page=page, limit=limit, status=status)

    @staticmethod
    def next_action(order: Order) -> Optional[str]:
        target = next_status(order.status)
        return ACTION_LABELS[target] if target else None

    def advance_order(self, order_id: str) -> Optional[Order]:
        try:
            order = self.orders.advance(order_id)
        except OrderStatusError as exc:
            self.notifier.notify("Order is complete", str(exc))
            return None
        except StorefrontError as exc:
            message = exc.user_message if isinstance(exc, ApiError) else "Please try again."
            self.notifier.notify("Status update failed", message, variant="destructive")
            return None
        self.notifier.notify("Order status updated")
        return order
