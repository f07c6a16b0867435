"""
Two-step checkout: confirm a delivery address, choose a payment method,
review, place the order.

Every transition re-checks its preconditions and reports a specific message
instead of silently refusing. Nothing here persists a draft: leaving
checkout drops the session, and a failed placement keeps it intact so the
user can fix things and resubmit.
"""
import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import List, Optional

from config import ACCOUNT_PATH, CART_PATH, CHECKOUT_PATH
from errors import ApiError, PaymentError, StorefrontError
from payment import PaymentAttempt, PaymentGatewayBridge
from schemas import (
    Address,
    Order,
    PaymentMode,
    UserProfile,
    compute_shipping,
    format_address_line,
    missing_address_fields,
    parse_response,
)
from session import Session, refresh_profile
from ui import Navigator, Notifier

logger = logging.getLogger(__name__)

NEW_ADDRESS = "new"

# Field names and their camelCase aliases
ADDRESS_KEYS = set(Address.model_fields) | {f.alias for f in Address.model_fields.values() if f.alias}

PAYMENT_MODE_LABELS = {
    "COD": "Cash on Delivery",
    "UPI": "UPI (Razorpay)",
}


class CheckoutStep(IntEnum):
    ADDRESS = 1
    PAYMENT = 2


@dataclass
class CheckoutSession:
    step: CheckoutStep = CheckoutStep.ADDRESS
    selected_address_id: str = NEW_ADDRESS
    draft_address: Address = field(default_factory=lambda: Address(label="Home", landmark=""))
    save_new_address: bool = True
    payment_mode: PaymentMode = "COD"
    confirm_open: bool = False
    placing_order: bool = False


def default_address_id(profile: Optional[UserProfile]) -> Optional[str]:
    if not profile:
        return None
    if profile.default_address_id:
        return profile.default_address_id
    if not profile.addresses:
        return None
    marked = next((a for a in profile.addresses if a.is_default), None)
    return (marked or profile.addresses[0]).id


def validate_address(address: Optional[Address]) -> Optional[str]:
    if address is None:
        return "Please select an address."
    missing = missing_address_fields(address)
    if missing:
        return f"Please fill all required address fields: {', '.join(missing)}."
    return None


def clean_shipping_address(address: Address) -> dict:
    """Only the fields an order stores; ids and default flags stay client-side."""
    return {
        "label": address.label,
        "address": address.address,
        "city": address.city,
        "district": address.district,
        "state": address.state,
        "landmark": address.landmark or "",
        "contactNumber": address.contact_number,
        "pinCode": address.pin_code,
    }


def format_price(amount: float) -> str:
    """Whole rupees with Indian digit grouping: 123456 -> ₹1,23,456."""
    rupees = int(round(amount))
    digits = str(abs(rupees))
    if len(digits) > 3:
        head, tail = digits[:-3], digits[-3:]
        groups: List[str] = []
        while len(head) > 2:
            groups.insert(0, head[-2:])
            head = head[:-2]
        if head:
            groups.insert(0, head)
        digits = ",".join(groups + [tail])
    return f"{'-' if rupees < 0 else ''}₹{digits}"


class Checkout:
    def __init__(self, api, session: Session, cart, payments: PaymentGatewayBridge, notifier: Notifier, navigator: Navigator):
        self.api = api
        self.session = session
        self.cart = cart
        self.payments = payments
        self.notifier = notifier
        self.navigator = navigator
        self.order: Optional[Order] = None
        self.payment_attempt: Optional[PaymentAttempt] = None

        profile = session.profile
        self.state = CheckoutSession(selected_address_id=default_address_id(profile) or NEW_ADDRESS)
        if profile and profile.phone:
            self.state.draft_address = self.state.draft_address.model_copy(update={"contact_number": profile.phone})

    @classmethod
    def begin(cls, api, session: Session, cart, payments: PaymentGatewayBridge, notifier: Notifier, navigator: Navigator) -> Optional["Checkout"]:
        """Enter checkout, or redirect (and return None) when signed out or the cart is empty."""
        if not session.is_authenticated:
            notifier.notify("Sign in required", "Please login to continue checkout.")
            navigator.go(session.scope.sign_in_path, return_to=CHECKOUT_PATH)
            return None
        if cart.is_empty():
            navigator.go(CART_PATH)
            return None
        if session.profile is None:
            try:
                refresh_profile(api, session)
            except StorefrontError as exc:
                logger.warning(f"Profile unavailable at checkout: {exc}")
        if not session.is_authenticated:
            return None
        navigator.go(CHECKOUT_PATH)
        return cls(api, session, cart, payments, notifier, navigator)

    # ----------------------- Derived -----------------------
    @property
    def profile(self) -> Optional[UserProfile]:
        return self.session.profile

    @property
    def saved_addresses(self) -> List[Address]:
        profile = self.profile
        return list(profile.addresses) if profile else []

    @property
    def selected_address(self) -> Optional[Address]:
        if self.state.selected_address_id == NEW_ADDRESS:
            return self.state.draft_address
        return next((a for a in self.saved_addresses if a.id == self.state.selected_address_id), None)

    @property
    def cod_allowed(self) -> bool:
        return self.cart.cod_allowed

    @property
    def subtotal(self) -> float:
        return self.cart.total

    @property
    def shipping(self) -> float:
        return compute_shipping(self.subtotal, self.cart.shipping_charges)

    @property
    def total(self) -> float:
        return self.subtotal + self.shipping

    def summary(self) -> dict:
        address = self.selected_address
        return {
            "address": format_address_line(address),
            "contact": address.contact_number if address else "",
            "payment": PAYMENT_MODE_LABELS[self.state.payment_mode],
            "items": [(e.product.name, e.quantity, format_price(e.product.price * e.quantity)) for e in self.cart.entries],
            "subtotal": format_price(self.subtotal),
            "shipping": "Free" if self.shipping == 0 else format_price(self.shipping),
            "total": format_price(self.total),
        }

    # ----------------------- Edits -----------------------
    def select_address(self, address_id: str) -> None:
        self.state.selected_address_id = address_id

    def update_draft(self, **fields) -> Address:
        """Accepts field names or their camelCase aliases."""
        unknown = set(fields) - ADDRESS_KEYS
        if unknown:
            raise ValueError(f"Unknown address fields: {', '.join(sorted(unknown))}")
        patch = Address.model_validate(fields).model_dump(exclude_unset=True)
        self.state.draft_address = Address.model_validate({**self.state.draft_address.model_dump(), **patch})
        return self.state.draft_address

    def set_save_new_address(self, save: bool) -> None:
        self.state.save_new_address = save

    def select_payment_mode(self, mode: PaymentMode) -> None:
        if mode not in PAYMENT_MODE_LABELS:
            raise ValueError(f"Unknown payment mode {mode!r}")
        self.state.payment_mode = mode

    # ----------------------- Transitions -----------------------
    def _ensure_signed_in(self) -> bool:
        if self.session.is_authenticated:
            return True
        self.notifier.notify("Sign in required", "Please login to continue checkout.")
        self.navigator.go(self.session.scope.sign_in_path, return_to=CHECKOUT_PATH)
        return False

    def _check_address(self) -> bool:
        error = validate_address(self.selected_address)
        if error:
            self.notifier.notify("Address required", error)
            self.state.step = CheckoutStep.ADDRESS
            return False
        return True

    def _check_cod(self) -> bool:
        if self.state.payment_mode == "COD" and not self.cod_allowed:
            self.notifier.notify("COD not available", "Cash on Delivery is not available for one or more items in your cart.")
            self.state.step = CheckoutStep.PAYMENT
            return False
        return True

    def continue_to_payment(self) -> bool:
        if not self._ensure_signed_in() or not self._check_address():
            return False
        self.state.step = CheckoutStep.PAYMENT
        return True

    def back_to_address(self) -> None:
        self.state.step = CheckoutStep.ADDRESS

    def review_order(self) -> bool:
        """Open the confirmation dialog."""
        if not self._ensure_signed_in() or not self._check_address() or not self._check_cod():
            return False
        self.state.confirm_open = True
        return True

    def cancel_confirmation(self) -> None:
        if not self.state.placing_order:
            self.state.confirm_open = False

    def _save_draft_address(self) -> None:
        """Append the draft to the address book and select the saved copy."""
        saved = self.saved_addresses
        draft = self.state.draft_address.model_copy(update={"id": None, "is_default": not saved})
        addresses = [a.to_wire(exclude_none=True) for a in saved] + [draft.to_wire(exclude_none=True)]
        self.api.put("/auth/me", {"addresses": addresses})
        profile = refresh_profile(self.api, self.session)
        known = {a.id for a in saved}
        added = next((a for a in profile.addresses if a.id not in known), None)
        if added is not None:
            self.state.selected_address_id = added.id
        else:
            self.state.save_new_address = False

    def place_order(self) -> Optional[Order]:
        if self.state.placing_order:
            logger.warning("Order placement already in progress")
            return None
        if not self._ensure_signed_in() or not self._check_address() or not self._check_cod():
            return None
        address = self.selected_address
        mode = self.state.payment_mode

        self.state.placing_order = True
        try:
            if self.state.selected_address_id == NEW_ADDRESS and self.state.save_new_address:
                self._save_draft_address()
            body = self.api.post("/orders", {
                "paymentMode": mode,
                "shippingAddress": clean_shipping_address(address),
            })
            self.order = parse_response(Order, body)
            logger.info(f"Order {self.order.id} created ({mode}, {format_price(self.order.total_amount)})")

            if mode == "UPI":
                self.payment_attempt = self.payments.start(
                    self.order.id,
                    self.order.total_amount,
                    profile=self.profile,
                    contact=address.contact_number,
                )
            else:
                self.notifier.notify("Order placed successfully")
                try:
                    self.cart.clear()
                except StorefrontError as exc:
                    logger.warning(f"Order {self.order.id} placed but the cart was not cleared: {exc}")
                self.navigator.go(ACCOUNT_PATH)
            return self.order
        except PaymentError as exc:
            logger.warning(f"Payment could not start for order {self.order.id if self.order else '?'}: {exc}")
            self.notifier.notify(exc.title, exc.description, variant="destructive")
        except ApiError as exc:
            logger.warning(f"Checkout failed: {exc}")
            self.notifier.notify("Checkout failed", exc.user_message, variant="destructive")
        except StorefrontError as exc:
            logger.warning(f"Checkout failed: {exc}")
            self.notifier.notify("Checkout failed", "Please try again.", variant="destructive")
        finally:
            self.state.placing_order = False
            self.state.confirm_open = False
        return None
