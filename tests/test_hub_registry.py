"""Connection registry tests — membership bookkeeping and the delivery plan.

Learn: connections here are plain async callables that append frames to
a list, so fan-out can be tested without sockets.
"""

import asyncio

import pytest

from orderhub.events.types import ALL_ORDERS_GROUP, ORDER_CREATED, ORDER_UPDATED, ChangeEvent, order_group
from orderhub.realtime.hub import ConnectionRegistry


def _inbox():
    frames: list[dict] = []

    async def send(frame: dict) -> None:
        frames.append(frame)

    return frames, send


async def _failing_send(frame: dict) -> None:
    raise ConnectionResetError("socket gone")


# ═══════════════════════════════════════════════════════════
# Membership
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_new_connection_has_no_groups():
    registry = ConnectionRegistry()
    _, send = _inbox()
    conn = await registry.connect(send)
    assert await registry.groups_of(conn.connection_id) == set()
    assert await registry.connection_count() == 1


@pytest.mark.asyncio
async def test_connection_ids_are_unique():
    registry = ConnectionRegistry()
    _, send = _inbox()
    ids = {(await registry.connect(send)).connection_id for _ in range(5)}
    assert len(ids) == 5


@pytest.mark.asyncio
async def test_join_and_leave_only_affect_the_caller():
    registry = ConnectionRegistry()
    _, send = _inbox()
    a = await registry.connect(send)
    b = await registry.connect(send)

    assert await registry.join(a.connection_id, order_group("order-001"))
    assert await registry.join(b.connection_id, order_group("order-001"))
    assert await registry.members(order_group("order-001")) == {a.connection_id, b.connection_id}

    assert await registry.leave(a.connection_id, order_group("order-001"))
    assert await registry.members(order_group("order-001")) == {b.connection_id}
    assert await registry.groups_of(a.connection_id) == set()
    assert await registry.groups_of(b.connection_id) == {order_group("order-001")}


@pytest.mark.asyncio
async def test_leave_group_never_joined_is_harmless():
    registry = ConnectionRegistry()
    _, send = _inbox()
    conn = await registry.connect(send)
    assert await registry.leave(conn.connection_id, ALL_ORDERS_GROUP)
    assert await registry.members(ALL_ORDERS_GROUP) == set()


@pytest.mark.asyncio
async def test_join_unknown_connection():
    registry = ConnectionRegistry()
    assert await registry.join("conn-missing", ALL_ORDERS_GROUP) is False


@pytest.mark.asyncio
async def test_disconnect_removes_all_memberships():
    registry = ConnectionRegistry()
    _, send = _inbox()
    conn = await registry.connect(send)
    await registry.join(conn.connection_id, ALL_ORDERS_GROUP)
    await registry.join(conn.connection_id, order_group("order-002"))

    await registry.disconnect(conn.connection_id)

    assert await registry.connection_count() == 0
    assert await registry.members(ALL_ORDERS_GROUP) == set()
    assert await registry.members(order_group("order-002")) == set()
    assert registry.snapshot() == {}
    # second disconnect is a no-op
    await registry.disconnect(conn.connection_id)


@pytest.mark.asyncio
async def test_concurrent_joins_and_leaves_keep_membership_consistent():
    registry = ConnectionRegistry()
    _, send = _inbox()
    conns = [await registry.connect(send) for _ in range(50)]

    await asyncio.gather(*(registry.join(c.connection_id, ALL_ORDERS_GROUP) for c in conns))
    await asyncio.gather(
        *(registry.leave(c.connection_id, ALL_ORDERS_GROUP) for c in conns[::2]),
        *(registry.disconnect(c.connection_id) for c in conns[1::4]),
    )

    expected = {c.connection_id for c in conns[1::2]} - {c.connection_id for c in conns[1::4]}
    assert await registry.members(ALL_ORDERS_GROUP) == expected
    assert await registry.connection_count() == 50 - len(conns[1::4])


# ═══════════════════════════════════════════════════════════
# Delivery plan
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_group_event_reaches_only_group_members():
    registry = ConnectionRegistry()
    inbox_a, send_a = _inbox()
    inbox_b, send_b = _inbox()
    inbox_c, send_c = _inbox()
    a = await registry.connect(send_a)
    b = await registry.connect(send_b)
    await registry.connect(send_c)
    await registry.join(a.connection_id, order_group("order-001"))
    await registry.join(b.connection_id, order_group("order-002"))

    event = ChangeEvent(ORDER_UPDATED, {"id": "order-001"}, group=order_group("order-001"))
    plan = await registry.plan(event)
    assert [c.connection_id for c in plan.targeted] == [a.connection_id]
    assert plan.fallback == []

    result = await registry.fan_out(event)
    assert (result.targeted, result.fallback, result.failed) == (1, 0, 0)
    assert inbox_a == [{
        "type": "event",
        "method": ORDER_UPDATED,
        "group": "order-order-001",
        "data": {"id": "order-001"},
    }]
    assert inbox_b == []
    assert inbox_c == []


@pytest.mark.asyncio
async def test_global_event_goes_to_all_orders_and_everyone():
    """Members of all-orders get a global event twice, everyone else once."""
    registry = ConnectionRegistry()
    listing, send_listing = _inbox()
    lurker, send_lurker = _inbox()
    subscriber = await registry.connect(send_listing)
    await registry.connect(send_lurker)
    await registry.join(subscriber.connection_id, ALL_ORDERS_GROUP)

    event = ChangeEvent(ORDER_CREATED, {"id": "order-009"})
    plan = await registry.plan(event)
    assert [c.connection_id for c in plan.targeted] == [subscriber.connection_id]
    assert len(plan.fallback) == 2
    assert plan.recipients == 3

    result = await registry.fan_out(event)
    assert (result.targeted, result.fallback) == (1, 2)
    assert len(listing) == 2
    assert len(lurker) == 1
    assert all(f["method"] == ORDER_CREATED and f["group"] is None for f in listing + lurker)


@pytest.mark.asyncio
async def test_group_with_no_members_delivers_nothing():
    registry = ConnectionRegistry()
    inbox, send = _inbox()
    await registry.connect(send)
    result = await registry.fan_out(ChangeEvent(ORDER_UPDATED, {}, group=order_group("nobody")))
    assert (result.targeted, result.fallback, result.failed) == (0, 0, 0)
    assert inbox == []


@pytest.mark.asyncio
async def test_failed_send_does_not_stop_the_others():
    registry = ConnectionRegistry()
    inbox, send = _inbox()
    broken = await registry.connect(_failing_send)
    healthy = await registry.connect(send)
    await registry.join(broken.connection_id, order_group("order-001"))
    await registry.join(healthy.connection_id, order_group("order-001"))

    result = await registry.fan_out(ChangeEvent(ORDER_UPDATED, {}, group=order_group("order-001")))
    assert result.failed == 1
    assert len(inbox) == 1


@pytest.mark.asyncio
async def test_stalled_send_times_out_without_blocking_the_others():
    registry = ConnectionRegistry(send_timeout=0.05)
    inbox, send = _inbox()
    never = asyncio.Event()

    async def stalled_send(frame: dict) -> None:
        await never.wait()

    stuck = await registry.connect(stalled_send)
    healthy = await registry.connect(send)
    await registry.join(stuck.connection_id, ALL_ORDERS_GROUP)
    await registry.join(healthy.connection_id, ALL_ORDERS_GROUP)

    result = await asyncio.wait_for(
        registry.fan_out(ChangeEvent(ORDER_CREATED, {"id": "order-010"})), timeout=2
    )
    # the stuck connection misses both its targeted and its fallback copy
    assert result.failed == 2
    assert len(inbox) == 2
