"""End-to-end: a GraphQL mutation reaching hub clients.

Learn: the API's notifier is a real HttpNotificationDispatcher whose
httpx client is wired straight into the hub app with ASGITransport, so
the whole path runs in-process:

    updateOrder → commit → dispatcher (background task) → POST /api/broadcast
    → ConnectionRegistry.fan_out → connection send callables

Hub clients are registered directly on the registry with send callables
that append to lists. drain() waits for the background deliveries.
"""

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport

from orderhub.events.types import ALL_ORDERS_GROUP, ORDER_UPDATED, order_group
from orderhub.hub_main import create_hub_app
from orderhub.realtime.dispatcher import HttpNotificationDispatcher

UPDATE_STATUS = """
mutation($id: ID!, $status: OrderStatus) {
  updateOrder(id: $id, status: $status) {
    order { id status }
    errorMessage
    errorCode
  }
}
"""


class FakeClient:
    def __init__(self):
        self.frames: list[dict] = []

    async def send(self, frame: dict) -> None:
        self.frames.append(frame)

    def events(self) -> list[tuple[str, object]]:
        return [(f["method"], f["group"]) for f in self.frames]


@pytest.fixture()
def hub_app(settings):
    return create_hub_app(settings)


@pytest_asyncio.fixture()
async def wired_dispatcher(app, hub_app):
    """Swap the API's recorder for an HTTP dispatcher pointed at the hub app."""
    hub_http = httpx.AsyncClient(transport=ASGITransport(app=hub_app), base_url="http://hub")
    dispatcher = HttpNotificationDispatcher(
        "http://hub",
        client=hub_http,
        background=True,
        backoff_seconds=0.001,
    )
    app.state.notifier = dispatcher
    yield dispatcher
    await dispatcher.aclose()


# ═══════════════════════════════════════════════════════════
# Status change fan-out
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_status_change_reaches_detail_list_and_other_clients(
    gql, admin_token, hub_app, wired_dispatcher
):
    registry = hub_app.state.registry
    detail, listing, elsewhere = FakeClient(), FakeClient(), FakeClient()

    detail_conn = await registry.connect(detail.send)
    listing_conn = await registry.connect(listing.send)
    elsewhere_conn = await registry.connect(elsewhere.send)
    await registry.join(detail_conn.connection_id, order_group("order-003"))
    await registry.join(listing_conn.connection_id, ALL_ORDERS_GROUP)
    await registry.join(elsewhere_conn.connection_id, order_group("order-001"))

    body = await gql(UPDATE_STATUS, {"id": "order-003", "status": "APPROVED"}, token=admin_token)
    assert body["data"]["updateOrder"]["order"]["status"] == "APPROVED"

    await wired_dispatcher.drain()

    # detail view: the group-targeted copy plus the global fallback copy
    assert sorted(detail.events(), key=str) == sorted(
        [(ORDER_UPDATED, "order-order-003"), (ORDER_UPDATED, None)], key=str
    )
    # list view: targeted via all-orders plus the fallback copy
    assert listing.events() == [(ORDER_UPDATED, None), (ORDER_UPDATED, None)]
    # a connection watching another order only sees the global copy
    assert elsewhere.events() == [(ORDER_UPDATED, None)]

    snapshot = detail.frames[0]["data"]
    assert snapshot["id"] == "order-003"
    assert snapshot["status"] == "Approved"
    assert snapshot["total"] == 1945.0
    assert snapshot["createdBy"]["username"] == "user"
    assert "passwordHash" not in snapshot["createdBy"]


@pytest.mark.asyncio
async def test_rejected_mutation_reaches_nobody(gql, user_token, hub_app, wired_dispatcher):
    registry = hub_app.state.registry
    watcher = FakeClient()
    conn = await registry.connect(watcher.send)
    await registry.join(conn.connection_id, ALL_ORDERS_GROUP)

    body = await gql(UPDATE_STATUS, {"id": "order-001", "status": "ARCHIVED"}, token=user_token)
    assert body["data"]["updateOrder"]["errorCode"] == "FORBIDDEN"

    await wired_dispatcher.drain()
    assert watcher.frames == []


# ═══════════════════════════════════════════════════════════
# Hub unavailable
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_mutation_succeeds_when_hub_is_down(app, gql, admin_token):
    def refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    dispatcher = HttpNotificationDispatcher(
        "http://hub",
        client=httpx.AsyncClient(transport=httpx.MockTransport(refuse), base_url="http://hub"),
        retries=2,
        backoff_seconds=0.001,
        background=True,
    )
    app.state.notifier = dispatcher

    body = await gql(UPDATE_STATUS, {"id": "order-002", "status": "PENDING"}, token=admin_token)
    assert body["data"]["updateOrder"]["errorMessage"] is None
    assert body["data"]["updateOrder"]["order"]["status"] == "PENDING"

    # delivery failures are swallowed; draining must not raise
    await dispatcher.drain()
    await dispatcher.aclose()
