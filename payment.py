"""
Razorpay hand-off for online (UPI) payments.

    order created (pendingPayment)
      -> gateway client loaded once
      -> POST /payment/create-order        gateway order token
      -> hosted checkout opened
      -> success callback -> POST /payment/verify -> clear cart, go to account
      -> payment.failed   -> report, cart kept
      -> dismissed        -> report cancelled, cart kept

The hosted checkout's success callback runs on the client and proves
nothing by itself. The cart is cleared only after the backend has checked the
payment signature.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional

import httpx

from config import ACCOUNT_PATH, RAZORPAY_SCRIPT_URL, STORE_NAME
from errors import (
    AuthenticationError,
    GatewayOrderError,
    ScriptLoadError,
    StorefrontError,
    VerificationError,
)
from schemas import GatewayOrder, UserProfile, parse_response
from ui import Navigator, Notifier

logger = logging.getLogger(__name__)

PAYMENT_FAILED_EVENT = "payment.failed"


@dataclass(frozen=True)
class GatewayResponse:
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str


@dataclass
class GatewayOptions:
    key: str
    amount: int
    currency: str
    name: str
    order_id: str
    prefill: Dict[str, str]
    handler: Callable[[GatewayResponse], None]
    on_dismiss: Callable[[], None]


class HostedCheckout:
    """What the gateway client hands back for one payment: subscribe, then open."""

    def on(self, event: str, callback: Callable[[Dict[str, Any]], None]) -> None:
        raise NotImplementedError

    def open(self) -> None:
        raise NotImplementedError


CheckoutFactory = Callable[[GatewayOptions], HostedCheckout]


class GatewayScript:
    """Loads the gateway client at most once; a failed load may be retried."""

    def __init__(self, loader: Callable[[], CheckoutFactory]):
        self._loader = loader
        self._factory: Optional[CheckoutFactory] = None

    @property
    def loaded(self) -> bool:
        return self._factory is not None

    def ensure_loaded(self) -> CheckoutFactory:
        if self._factory is not None:
            return self._factory
        try:
            factory = self._loader()
        except Exception as exc:
            raise ScriptLoadError(str(exc)) from exc
        if factory is None:
            raise ScriptLoadError("Gateway client did not initialise")
        self._factory = factory
        logger.info("Payment gateway client loaded")
        return factory


class RemoteGatewayScript(GatewayScript):
    """Fetches the hosted checkout script before handing out the embedder's factory."""

    def __init__(self, factory: CheckoutFactory, url: str = RAZORPAY_SCRIPT_URL, http: Optional[httpx.Client] = None):
        self.url = url

        def load() -> CheckoutFactory:
            response = http.get(url) if http is not None else httpx.get(url)
            response.raise_for_status()
            return factory

        super().__init__(load)


class AttemptStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"
    VERIFICATION_FAILED = "verification_failed"


@dataclass
class PaymentAttempt:
    order_id: str
    gateway_order: GatewayOrder
    status: AttemptStatus = AttemptStatus.PENDING
    error: Optional[str] = None
    payment_id: Optional[str] = None
    events: list = field(default_factory=list)


class PaymentGatewayBridge:
    def __init__(self, api, script: GatewayScript, cart, notifier: Notifier, navigator: Navigator, store_name: str = STORE_NAME):
        self.api = api
        self.script = script
        self.cart = cart
        self.notifier = notifier
        self.navigator = navigator
        self.store_name = store_name

    def start(self, order_id: str, amount: float, profile: Optional[UserProfile] = None, contact: Optional[str] = None) -> PaymentAttempt:
        """
        Open the hosted checkout for an already-created order.

        Raises ScriptLoadError or GatewayOrderError when the payment cannot
        be started. Everything after ``open()`` is reported through callbacks.
        """
        factory = self.script.ensure_loaded()
        try:
            body = self.api.post("/payment/create-order", {"orderId": order_id, "amount": amount})
            gateway_order = parse_response(GatewayOrder, body)
        except AuthenticationError:
            raise
        except StorefrontError as exc:
            raise GatewayOrderError(str(exc)) from exc
        attempt = PaymentAttempt(order_id=order_id, gateway_order=gateway_order)

        options = GatewayOptions(
            key=gateway_order.key_id,
            amount=gateway_order.amount,
            currency=gateway_order.currency,
            name=self.store_name,
            order_id=gateway_order.razorpay_order_id,
            prefill={
                "name": profile.name if profile else "",
                "email": profile.email if profile else "",
                "contact": contact or (profile.phone if profile else "") or "",
            },
            handler=lambda response: self.on_success(attempt, response),
            on_dismiss=lambda: self.on_dismiss(attempt),
        )
        checkout = factory(options)
        checkout.on(PAYMENT_FAILED_EVENT, lambda response: self.on_failure(attempt, response))
        checkout.open()
        logger.info(f"Opened payment for order {order_id} ({gateway_order.razorpay_order_id})")
        return attempt

    def on_success(self, attempt: PaymentAttempt, response: GatewayResponse) -> None:
        attempt.events.append("success")
        if attempt.status is AttemptStatus.SUCCEEDED:
            logger.info(f"Duplicate success callback for order {attempt.order_id}")
            return
        try:
            self.api.post("/payment/verify", {
                "orderId": attempt.order_id,
                "razorpayOrderId": response.razorpay_order_id,
                "razorpayPaymentId": response.razorpay_payment_id,
                "razorpaySignature": response.razorpay_signature,
            })
        except StorefrontError as exc:
            attempt.status = AttemptStatus.VERIFICATION_FAILED
            attempt.error = str(exc)
            logger.warning(f"Payment verification failed for order {attempt.order_id}: {exc}")
            self.notifier.notify(VerificationError.title, VerificationError.description, variant="destructive")
            return

        attempt.status = AttemptStatus.SUCCEEDED
        attempt.payment_id = response.razorpay_payment_id
        self.notifier.notify("Payment successful")
        try:
            self.cart.clear()
        except StorefrontError as exc:
            logger.warning(f"Paid order {attempt.order_id} but the cart was not cleared: {exc}")
        self.navigator.go(ACCOUNT_PATH)

    def on_failure(self, attempt: PaymentAttempt, response: Optional[Dict[str, Any]]) -> None:
        attempt.events.append("failed")
        error = (response or {}).get("error") or {}
        description = error.get("description") or "The payment could not be completed."
        attempt.status = AttemptStatus.FAILED
        attempt.error = description
        self.notifier.notify("Payment failed", description, variant="destructive")

    def on_dismiss(self, attempt: PaymentAttempt) -> None:
        attempt.events.append("dismissed")
        if attempt.status not in (AttemptStatus.PENDING, AttemptStatus.FAILED):
            return
        attempt.status = AttemptStatus.CANCELLED
        self.notifier.notify("Payment cancelled", "You can retry the payment from your orders page.")
