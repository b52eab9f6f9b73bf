import pytest
from sqlalchemy import func, select

from app.core.errors import ConfirmationRequired, IllegalTransition, TerminalStateViolation
from app.crud import driver_location as location_crud
from app.models import DriverLocation, LocationStatus, Order, OrderStatus
from app.services.tracking.hub import ORDER_EVENT, REVOKED_EVENT
from app.services.tracking.state_machine import (
    allowed_transitions,
    check_transition,
    next_action_label,
    next_status,
)


def test_pending_only_reaches_accepted_or_cancelled():
    assert allowed_transitions(OrderStatus.PENDING) == {OrderStatus.ACCEPTED, OrderStatus.CANCELLED}
    for target in (OrderStatus.PREPARING, OrderStatus.ON_DELIVERY, OrderStatus.DELIVERED):
        with pytest.raises(IllegalTransition):
            check_transition(OrderStatus.PENDING, target)


@pytest.mark.parametrize("terminal", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
def test_terminal_statuses_accept_nothing(terminal):
    assert allowed_transitions(terminal) == frozenset()
    for target in OrderStatus:
        with pytest.raises(TerminalStateViolation):
            check_transition(terminal, target)


def test_linear_flow_and_labels():
    assert next_status("pending") == OrderStatus.ACCEPTED
    assert next_status("accepted") == OrderStatus.PREPARING
    assert next_status("preparing") == OrderStatus.ON_DELIVERY
    assert next_status("on_delivery") == OrderStatus.DELIVERED
    assert next_status("delivered") is None
    assert next_action_label("preparing") == "Out for Delivery"
    assert next_action_label("cancelled") is None


async def test_advance_walks_the_flow(workflow, make_order, notifications):
    order = await make_order()
    for expected in (OrderStatus.ACCEPTED, OrderStatus.PREPARING):
        await workflow.advance(order)
        assert order.order_status == expected
    assert order.tracking_code is None
    assert [n.order_status for n in notifications] == ["accepted", "preparing"]


async def test_out_for_delivery_generates_codes_once(workflow, make_order):
    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)

    assert order.order_status == OrderStatus.ON_DELIVERY
    assert order.tracking_code and order.driver_code and order.driver_pin
    codes = (order.tracking_code, order.driver_code, order.driver_pin)

    await workflow.ensure_on_delivery(order)
    assert (order.tracking_code, order.driver_code, order.driver_pin) == codes


async def test_existing_codes_survive_out_for_delivery(workflow, make_order):
    order = await make_order(
        OrderStatus.PREPARING, tracking_code="SR-KEEP01", driver_code="DRV-KEEP", driver_pin="4321"
    )
    await workflow.advance(order)
    assert (order.tracking_code, order.driver_code, order.driver_pin) == ("SR-KEEP01", "DRV-KEEP", "4321")


async def test_out_for_delivery_notification_carries_tracking_link(workflow, make_order, notifications):
    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)

    notification = notifications[-1]
    assert notification.order_status == "on_delivery"
    assert notification.tracking_code == order.tracking_code
    assert notification.tracking_url.endswith(f"/track/{order.tracking_code}")


async def test_delivered_stamps_time_and_is_final(workflow, make_order):
    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)
    await workflow.advance(order)

    assert order.order_status == OrderStatus.DELIVERED
    assert order.delivered_at is not None
    with pytest.raises(TerminalStateViolation):
        await workflow.advance(order)
    with pytest.raises(TerminalStateViolation):
        await workflow.cancel(order)


async def test_delivered_flips_location_status(db, workflow, make_order, hub):
    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)
    await location_crud.upsert_location(db, order, 29.37, 47.97)
    await db.commit()

    queue = hub.subscribe(order.tracking_code)
    await workflow.advance(order)

    location = await location_crud.get_location_for_order(db, order.id)
    assert location.status == LocationStatus.DELIVERED
    events = [queue.get_nowait()["type"] for _ in range(queue.qsize())]
    assert events == ["order", "location"]


async def test_cancel_from_any_open_status(workflow, make_order):
    for status in (OrderStatus.PENDING, OrderStatus.ACCEPTED, OrderStatus.PREPARING, OrderStatus.ON_DELIVERY):
        order = await make_order(status)
        await workflow.cancel(order)
        assert order.order_status == OrderStatus.CANCELLED


async def test_illegal_transition_changes_nothing(workflow, make_order, notifications):
    order = await make_order()
    with pytest.raises(IllegalTransition):
        await workflow.transition(order, OrderStatus.DELIVERED)
    assert order.order_status == OrderStatus.PENDING
    assert notifications == []


async def test_second_out_for_delivery_keeps_first_codes(session_factory, workflow, make_order, hub, notifications):
    from app.services.tracking.state_machine import OrderWorkflow

    order = await make_order(OrderStatus.PREPARING)
    async with session_factory() as other_db:
        stale = await other_db.get(Order, order.id)
        await workflow.advance(order)
        codes = (order.tracking_code, order.driver_code, order.driver_pin)

        with pytest.raises(IllegalTransition):
            await OrderWorkflow(other_db, hub=hub, notifier=notifications.append).advance(stale)
        assert (stale.tracking_code, stale.driver_code, stale.driver_pin) == codes
        assert stale.order_status == OrderStatus.ON_DELIVERY

    await workflow.db.refresh(order)
    assert (order.tracking_code, order.driver_code, order.driver_pin) == codes
    assert [n.tracking_code for n in notifications] == [codes[0]]


async def test_delivered_lands_once_across_sessions(session_factory, workflow, make_order, hub, notifications):
    from app.services.tracking.state_machine import OrderWorkflow

    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)
    async with session_factory() as other_db:
        stale = await other_db.get(Order, order.id)
        await workflow.transition(order, OrderStatus.DELIVERED)
        delivered_at = order.delivered_at

        with pytest.raises(TerminalStateViolation):
            await OrderWorkflow(other_db, hub=hub, notifier=notifications.append).transition(stale, OrderStatus.DELIVERED)
        assert stale.delivered_at == delivered_at

    assert [n.order_status for n in notifications].count("delivered") == 1


async def test_start_delivery_after_admin_advance_is_accepted(session_factory, workflow, make_order, hub, notifications):
    from app.services.tracking.state_machine import OrderWorkflow

    order = await make_order(OrderStatus.PREPARING)
    async with session_factory() as other_db:
        stale = await other_db.get(Order, order.id)
        await workflow.advance(order)

        await OrderWorkflow(other_db, hub=hub, notifier=notifications.append).ensure_on_delivery(stale)
        assert stale.order_status == OrderStatus.ON_DELIVERY
        assert stale.tracking_code == order.tracking_code
    assert len(notifications) == 1


async def test_notifier_failure_does_not_undo_transition(db, hub, make_order):
    from app.services.tracking.state_machine import OrderWorkflow

    def broken(notification):
        raise RuntimeError("mail queue down")

    order = await make_order()
    await OrderWorkflow(db, hub=hub, notifier=broken).advance(order)
    await db.refresh(order)
    assert order.order_status == OrderStatus.ACCEPTED


async def test_transition_publishes_order_row(workflow, make_order, hub):
    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)
    queue = hub.subscribe(order.tracking_code)

    await workflow.cancel(order)
    event = queue.get_nowait()
    assert event["type"] == ORDER_EVENT
    assert event["data"]["order_status"] == "cancelled"
    assert "driver_pin" not in event["data"]


async def _location_count(db, order_id):
    result = await db.execute(
        select(func.count()).select_from(DriverLocation).where(DriverLocation.order_id == order_id)
    )
    return result.scalar_one()


async def test_regenerate_requires_confirmation(workflow, make_order):
    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)
    code = order.tracking_code
    with pytest.raises(ConfirmationRequired):
        await workflow.regenerate_codes(order)
    assert order.tracking_code == code


async def test_regenerate_replaces_codes_and_forgets_driver(db, workflow, make_order, hub):
    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)
    order.driver_name = "Ahmad"
    order.driver_phone = "+96512345678"
    await location_crud.upsert_location(db, order, 29.37, 47.97)
    await db.commit()
    old = (order.tracking_code, order.driver_code, order.driver_pin)
    old_queue = hub.subscribe(order.tracking_code)

    await workflow.regenerate_codes(order, confirm=True)

    assert order.tracking_code != old[0]
    assert order.driver_code != old[1]
    assert order.driver_name is None and order.driver_phone is None
    assert order.order_status == OrderStatus.ON_DELIVERY
    assert await _location_count(db, order.id) == 0
    assert old_queue.get_nowait()["type"] == REVOKED_EVENT


async def test_regenerate_always_yields_new_codes(workflow, make_order):
    order = await make_order(OrderStatus.PREPARING)
    await workflow.advance(order)
    seen = {order.tracking_code}
    for _ in range(20):
        await workflow.regenerate_codes(order, confirm=True)
        assert order.tracking_code not in seen
        seen.add(order.tracking_code)


async def test_regenerate_rejected_on_terminal_orders(workflow, make_order):
    order = await make_order(OrderStatus.CANCELLED, tracking_code="SR-DONE01", driver_code="DRV-DONE", driver_pin="1234")
    with pytest.raises(TerminalStateViolation):
        await workflow.regenerate_codes(order, confirm=True)
    assert order.tracking_code == "SR-DONE01"
