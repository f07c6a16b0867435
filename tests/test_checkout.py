import pytest

from checkout import NEW_ADDRESS, CheckoutStep, clean_shipping_address, default_address_id, format_price, validate_address
from schemas import Address, OrderStatus, UserProfile

from conftest import HOME, PASSWORD, body_of, checkout_with, fill_address, item_id, requests_to

OFFICE = Address(
    label="Office",
    address="4th Floor, Tech Park",
    city="Pune",
    district="Pune",
    state="Maharashtra",
    contact_number="9123456780",
    pin_code="411001",
)


@pytest.mark.parametrize("amount, text", [
    (0, "₹0"),
    (899, "₹899"),
    (4599, "₹4,599"),
    (123456, "₹1,23,456"),
    (10000000, "₹1,00,00,000"),
])
def test_format_price(amount, text):
    assert format_price(amount) == text


def test_default_address_id_preference():
    a = Address(id="a", **OFFICE.model_dump(exclude={"id"}))
    b = Address(id="b", is_default=True, **HOME.model_dump(exclude={"id", "is_default"}))
    base = dict(id="u", name="Asha", email="asha@elorie.in")
    assert default_address_id(None) is None
    assert default_address_id(UserProfile(**base)) is None
    assert default_address_id(UserProfile(addresses=[a, b], default_address_id="a", **base)) == "a"
    assert default_address_id(UserProfile(addresses=[a, b], **base)) == "b"
    assert default_address_id(UserProfile(addresses=[a], **base)) == "a"


def test_validate_address_messages():
    assert validate_address(None) == "Please select an address."
    assert validate_address(HOME) is None
    message = validate_address(HOME.model_copy(update={"city": " ", "pin_code": ""}))
    assert message == "Please fill all required address fields: city, pinCode."


def test_clean_shipping_address_drops_client_fields():
    cleaned = clean_shipping_address(HOME.model_copy(update={"id": "x", "is_default": True, "landmark": None}))
    assert set(cleaned) == {"label", "address", "city", "district", "state", "landmark", "contactNumber", "pinCode"}
    assert cleaned["landmark"] == ""


def test_begin_requires_sign_in(store):
    assert store.begin_checkout() is None
    assert store.navigator.location == "/profile"
    assert store.navigator.return_to == "/checkout"
    assert store.notifier.last.title == "Sign in required"


def test_begin_with_empty_cart_goes_to_cart(customer):
    assert customer.begin_checkout() is None
    assert customer.navigator.location == "/cart"


def test_new_customer_starts_with_draft_address(customer):
    customer.cart.add(customer.get_product(item_id("Pearl Drop Earrings")))
    checkout = customer.begin_checkout()
    assert customer.navigator.location == "/checkout"
    assert checkout.state.step is CheckoutStep.ADDRESS
    assert checkout.state.selected_address_id == NEW_ADDRESS
    assert checkout.state.draft_address.label == "Home"
    assert checkout.state.draft_address.contact_number == "9876500000"
    assert checkout.state.payment_mode == "COD"


def test_saved_default_address_is_preselected(store):
    store.register("Ravi", "ravi@elorie.in", PASSWORD, address=HOME)
    store.cart.add(store.get_product(item_id("Pearl Drop Earrings")))
    checkout = store.begin_checkout()
    assert checkout.state.selected_address_id == store.user.default_address_id
    assert checkout.selected_address.city == "Jaipur"
    assert checkout.continue_to_payment()
    assert checkout.state.step is CheckoutStep.PAYMENT
    checkout.back_to_address()
    assert checkout.state.step is CheckoutStep.ADDRESS


def test_incomplete_address_blocks_payment_step(customer):
    customer.cart.add(customer.get_product(item_id("Pearl Drop Earrings")))
    checkout = customer.begin_checkout()
    checkout.update_draft(address="12 MG Road", city="Jaipur")

    assert not checkout.continue_to_payment()
    assert checkout.state.step is CheckoutStep.ADDRESS
    assert customer.notifier.last.title == "Address required"
    assert customer.notifier.last.description == "Please fill all required address fields: district, state, pinCode."

    checkout.select_address("no-such-address")
    assert not checkout.continue_to_payment()
    assert customer.notifier.last.description == "Please select an address."


def test_unknown_payment_mode_rejected(customer):
    checkout = checkout_with(customer, "Pearl Drop Earrings")
    with pytest.raises(ValueError):
        checkout.select_payment_mode("CARD")


def test_cod_blocked_when_any_item_opts_out(customer, sent):
    checkout = checkout_with(customer, "Diamond Solitaire Ring", "Pearl Drop Earrings")
    assert checkout.continue_to_payment()
    assert not checkout.cod_allowed

    assert not checkout.review_order()
    assert customer.notifier.last.title == "COD not available"
    assert checkout.state.step is CheckoutStep.PAYMENT
    assert not checkout.state.confirm_open

    assert checkout.place_order() is None
    assert not requests_to(sent, "POST", "/orders")

    checkout.select_payment_mode("UPI")
    assert checkout.review_order()
    assert checkout.state.confirm_open
    checkout.cancel_confirmation()
    assert not checkout.state.confirm_open


def test_cod_order_placed_and_cart_cleared(customer):
    checkout = checkout_with(customer, "Pearl Drop Earrings")
    assert checkout.summary()["shipping"] == "Free"

    order = checkout.place_order()

    assert order.status is OrderStatus.ORDER_PLACED
    assert order.payment_mode == "COD"
    assert order.total_amount == 899
    assert customer.cart.is_empty()
    assert customer.api.get("/cart")["items"] == []
    assert customer.navigator.location == "/profile"
    assert "Order placed successfully" in customer.notifier.titles()
    assert not checkout.state.placing_order
    assert not checkout.state.confirm_open


def test_small_order_pays_line_shipping(customer):
    checkout = checkout_with(customer, "Dainty Gold Anklet")
    assert checkout.subtotal == 399
    assert checkout.shipping == 49
    summary = checkout.summary()
    assert summary["shipping"] == "₹49"
    assert summary["total"] == "₹448"
    assert summary["payment"] == "Cash on Delivery"
    assert checkout.place_order().total_amount == 448


def test_first_new_address_saved_as_default(customer, sent):
    checkout = checkout_with(customer, "Pearl Drop Earrings")
    order = checkout.place_order()

    put = body_of(requests_to(sent, "PUT", "/auth/me")[-1])
    assert len(put["addresses"]) == 1
    assert put["addresses"][0]["isDefault"] is True
    assert "id" not in put["addresses"][0]

    profile = customer.user
    assert len(profile.addresses) == 1
    assert profile.default_address_id == profile.addresses[0].id

    shipping = body_of(requests_to(sent, "POST", "/orders")[-1])["shippingAddress"]
    assert "id" not in shipping and "isDefault" not in shipping
    assert shipping["pinCode"] == "302001"
    assert order.shipping_address.city == "Jaipur"


def test_additional_address_keeps_existing_default(store, sent):
    store.register("Ravi", "ravi@elorie.in", PASSWORD, address=HOME)
    original_default = store.user.default_address_id
    store.cart.add(store.get_product(item_id("Pearl Drop Earrings")))
    checkout = store.begin_checkout()
    fill_address(checkout, OFFICE)

    checkout.place_order()

    put = body_of(requests_to(sent, "PUT", "/auth/me")[-1])
    assert [a.get("isDefault") for a in put["addresses"]] == [True, False]
    assert len(store.user.addresses) == 2
    assert store.user.default_address_id == original_default


def test_unsaved_new_address_is_only_used_for_the_order(customer, sent):
    checkout = checkout_with(customer, "Pearl Drop Earrings")
    checkout.set_save_new_address(False)
    order = checkout.place_order()
    assert not requests_to(sent, "PUT", "/auth/me")
    assert customer.user.addresses == []
    assert order.shipping_address.address == "12 MG Road"


def test_backend_rejection_keeps_checkout_state(customer):
    checkout = checkout_with(customer, "Pearl Drop Earrings")
    checkout.set_save_new_address(False)
    checkout.continue_to_payment()
    customer.api.delete("/cart")

    assert checkout.place_order() is None
    assert customer.notifier.last.title == "Checkout failed"
    assert customer.notifier.last.description == "Cart is empty"
    assert checkout.state.step is CheckoutStep.PAYMENT
    assert checkout.state.payment_mode == "COD"
    assert checkout.state.draft_address.city == "Jaipur"
    assert not checkout.state.placing_order
    assert checkout.order is None


def test_place_order_ignored_while_in_flight(customer, sent):
    checkout = checkout_with(customer, "Pearl Drop Earrings")
    checkout.state.placing_order = True
    assert checkout.place_order() is None
    assert not requests_to(sent, "POST", "/orders")


class MalformedOrders:
    """Answers order creation with a body that is not an order."""

    def __init__(self, api):
        self.api = api

    def __getattr__(self, name):
        return getattr(self.api, name)

    def post(self, path, json=None):
        if path == "/orders":
            return {"id": "o1"}
        return self.api.post(path, json)


def test_malformed_order_response_is_reported(customer):
    checkout = checkout_with(customer, "Pearl Drop Earrings")
    checkout.api = MalformedOrders(customer.api)

    assert checkout.place_order() is None

    assert customer.notifier.last.title == "Checkout failed"
    assert customer.notifier.last.variant == "destructive"
    assert checkout.order is None
    assert not checkout.state.placing_order
    assert not customer.cart.is_empty()


def test_retry_after_failure_saves_address_once(customer, sent):
    checkout = checkout_with(customer, "Pearl Drop Earrings")
    customer.api.delete("/cart")
    assert checkout.place_order() is None
    assert customer.notifier.last.description == "Cart is empty"

    saved = customer.user.addresses
    assert len(saved) == 1
    assert checkout.state.selected_address_id == saved[0].id

    customer.cart.add(customer.get_product(item_id("Pearl Drop Earrings")))
    assert checkout.review_order()
    order = checkout.place_order()

    assert order is not None
    assert len(requests_to(sent, "PUT", "/auth/me")) == 1
    assert [a.address for a in customer.user.addresses] == ["12 MG Road"]
    assert order.shipping_address.pin_code == "302001"


def test_update_draft_accepts_aliases_and_rejects_unknown_fields(customer):
    customer.cart.add(customer.get_product(item_id("Pearl Drop Earrings")))
    checkout = customer.begin_checkout()

    draft = checkout.update_draft(contactNumber="9000000001", pinCode="560001", city="Bengaluru")
    assert draft.contact_number == "9000000001"
    assert draft.pin_code == "560001"
    assert draft.city == "Bengaluru"
    assert draft.label == "Home"

    with pytest.raises(ValueError):
        checkout.update_draft(zip="560001")
    assert checkout.state.draft_address.pin_code == "560001"
