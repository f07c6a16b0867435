import pytest

from errors import ApiError, OrderStatusError
from orders import ACTION_LABELS, STATUS_LABELS, can_transition, is_terminal, next_status
from schemas import OrderStatus

from conftest import checkout_with, requests_to

FORWARD = [
    OrderStatus.PENDING_PAYMENT,
    OrderStatus.ORDER_PLACED,
    OrderStatus.ORDER_CONFIRMED,
    OrderStatus.ORDER_DISPATCHED,
    OrderStatus.ORDER_DELIVERED,
]


def test_next_status_walks_forward_one_step():
    for current, expected in zip(FORWARD, FORWARD[1:]):
        assert next_status(current) is expected
        assert next_status(current.value) is expected
    assert next_status(OrderStatus.ORDER_DELIVERED) is None
    assert next_status(OrderStatus.CANCELLED) is None


def test_terminal_statuses():
    assert is_terminal("orderDelivered")
    assert is_terminal("cancelled")
    assert not is_terminal("pendingPayment")


@pytest.mark.parametrize("current", list(OrderStatus))
def test_transitions_never_go_backwards(current):
    for target in OrderStatus:
        allowed = can_transition(current, target)
        if current is OrderStatus.PENDING_PAYMENT and target is OrderStatus.CANCELLED:
            assert allowed
        elif target is OrderStatus.CANCELLED or current is OrderStatus.CANCELLED:
            assert not allowed
        else:
            assert allowed == (FORWARD.index(target) == FORWARD.index(current) + 1)


def test_every_status_has_a_label():
    assert set(STATUS_LABELS) == set(OrderStatus)
    assert ACTION_LABELS[OrderStatus.ORDER_PLACED] == "Mark Paid"


def test_admin_advances_cod_order_to_delivered(customer, admin, sent):
    order = checkout_with(customer, "Pearl Drop Earrings").place_order()
    assert order.status is OrderStatus.ORDER_PLACED
    assert admin.next_action(order) == "Confirm Order"

    seen = []
    for _ in range(3):
        seen.append(admin.advance_order(order.id).status)
    assert seen == [OrderStatus.ORDER_CONFIRMED, OrderStatus.ORDER_DISPATCHED, OrderStatus.ORDER_DELIVERED]

    patches = len([r for r in sent if r.method == "PATCH"])
    assert admin.advance_order(order.id) is None
    assert admin.notifier.last.title == "Order is complete"
    assert len([r for r in sent if r.method == "PATCH"]) == patches
    assert admin.next_action(admin.orders.get(order.id)) is None


def test_pending_payment_order_can_be_cancelled(customer, admin):
    order = checkout_with(customer, "Pearl Drop Earrings", mode="UPI").place_order()
    assert admin.next_action(order) == "Mark Paid"
    cancelled = admin.orders.set_status(order.id, order.status, OrderStatus.CANCELLED)
    assert cancelled.status is OrderStatus.CANCELLED


def test_backward_move_rejected_before_request(customer, admin, sent):
    order = checkout_with(customer, "Pearl Drop Earrings").place_order()
    with pytest.raises(OrderStatusError):
        admin.orders.set_status(order.id, OrderStatus.ORDER_PLACED, OrderStatus.PENDING_PAYMENT)
    assert not requests_to(sent, "PATCH", f"/admin/orders/{order.id}/status")


def test_backend_rejects_skipped_status(customer, admin):
    order = checkout_with(customer, "Pearl Drop Earrings").place_order()
    with pytest.raises(ApiError) as info:
        admin.api.patch(f"/admin/orders/{order.id}/status", {"status": "orderDelivered"})
    assert info.value.status_code == 400
    assert admin.orders.get(order.id).status is OrderStatus.ORDER_PLACED


def test_admin_list_filters_and_paginates(customer, admin):
    checkout_with(customer, "Pearl Drop Earrings").place_order()
    customer.cart.clear()
    checkout_with(customer, "Dainty Gold Anklet", mode="UPI").place_order()

    page = admin.list_orders(limit=1)
    assert page.total_count == 2
    assert page.total_pages == 2
    assert len(page.data) == 1

    pending = admin.list_orders(status="pendingPayment")
    assert [o.status for o in pending.data] == [OrderStatus.PENDING_PAYMENT]
    assert pending.data[0].total_amount == 448


def test_customer_order_history(customer):
    assert customer.order_history() == []
    placed = checkout_with(customer, "Pearl Drop Earrings").place_order()
    history = customer.order_history()
    assert [o.id for o in history] == [placed.id]
    assert history[0].items[0].item.title == "Pearl Drop Earrings"
