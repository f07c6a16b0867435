import json

import pytest
from fastapi.testclient import TestClient

import database
from main import app, payment_signature, seed_catalog
from payment import GatewayResponse, GatewayScript, HostedCheckout, PAYMENT_FAILED_EVENT
from schemas import Address
from storage import MemoryStorage
from storefront import AdminConsole, Storefront

PASSWORD = "secret123"

HOME = Address(
    label="Home",
    address="12 MG Road",
    city="Jaipur",
    district="Jaipur",
    state="Rajasthan",
    landmark="Near City Palace",
    contact_number="9876543210",
    pin_code="302001",
)


class FakeCheckout(HostedCheckout):
    def __init__(self, options):
        self.options = options
        self.handlers = {}
        self.opened = False

    def on(self, event, callback):
        self.handlers[event] = callback

    def open(self):
        self.opened = True

    def succeed(self, payment_id="pay_Test123", signature=None):
        order_id = self.options.order_id
        self.options.handler(GatewayResponse(
            razorpay_order_id=order_id,
            razorpay_payment_id=payment_id,
            razorpay_signature=signature or payment_signature(order_id, payment_id),
        ))

    def fail(self, description="Payment declined by bank"):
        self.handlers[PAYMENT_FAILED_EVENT]({"error": {"code": "BAD_REQUEST_ERROR", "description": description}})

    def dismiss(self):
        self.options.on_dismiss()


class FakeGateway:
    def __init__(self):
        self.loads = 0
        self.fail_loads = 0
        self.checkouts = []

    def load(self):
        self.loads += 1
        if self.fail_loads:
            self.fail_loads -= 1
            raise ConnectionError("script blocked")
        return self.open_checkout

    def open_checkout(self, options):
        checkout = FakeCheckout(options)
        self.checkouts.append(checkout)
        return checkout

    @property
    def last(self):
        return self.checkouts[-1]


@pytest.fixture(autouse=True)
def fresh_db():
    database.db.drop()
    seed_catalog()
    yield
    database.db.drop()


@pytest.fixture
def http():
    with TestClient(app) as client:
        yield client


@pytest.fixture
def sent(http):
    """Every request the client sends, in order."""
    log = []
    http.event_hooks = {"request": [log.append], "response": []}
    return log


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def store(http, gateway):
    return Storefront(storage=MemoryStorage(), http=http, gateway=GatewayScript(gateway.load))


@pytest.fixture
def customer(store):
    profile = store.register("Asha Rao", "asha@elorie.in", PASSWORD, phone="9876500000")
    assert profile is not None
    return store


@pytest.fixture
def admin(http):
    console = AdminConsole(storage=MemoryStorage(), http=http)
    assert console.login("admin", "admin123")
    return console


def item_id(title):
    return database.find_document("item", {"title": title})["id"]


def body_of(request):
    return json.loads(request.content) if request.content else None


def requests_to(log, method, path):
    return [r for r in log if r.method == method and r.url.path == path]


def fill_address(checkout, address=HOME):
    checkout.select_address("new")
    return checkout.update_draft(**address.model_dump(exclude={"id", "is_default"}))


def checkout_with(store, *titles, mode="COD"):
    for title in titles:
        store.cart.add(store.get_product(item_id(title)))
    checkout = store.begin_checkout()
    fill_address(checkout)
    checkout.select_payment_mode(mode)
    return checkout
