"""Hub routes — WebSocket client endpoint and the internal broadcast endpoint.

Learn: Each client connects to /hubs/notifications, optionally with
?access_token=JWT. The handler:
1. Authenticates the token if one is given (invalid → close 4001)
2. Registers the connection with no group memberships
3. Serves JoinOrderGroup / LeaveOrderGroup / JoinAllOrdersGroup /
   LeaveAllOrdersGroup invocations and ping keepalives
4. Deregisters the connection and all its memberships on disconnect

The API never talks to sockets directly. It POSTs ChangeEvents to
/api/broadcast, optionally proving itself with X-Internal-Api-Key.
"""

import json
import secrets
from typing import Optional

import structlog
from fastapi import APIRouter, Header, HTTPException, Request, WebSocket, WebSocketDisconnect
from pydantic import ValidationError
from starlette.websockets import WebSocketState

from orderhub.auth.dependencies import resolve_identity
from orderhub.events.types import (
    ALL_ORDERS_GROUP,
    JOIN_ALL_ORDERS_GROUP,
    JOIN_ORDER_GROUP,
    LEAVE_ALL_ORDERS_GROUP,
    LEAVE_ORDER_GROUP,
    ChangeEvent,
    order_group,
)
from orderhub.realtime.hub import ConnectionRegistry, HubConnection
from orderhub.schemas.broadcast import BroadcastMessage, BroadcastResult, HubInvocation

logger = structlog.get_logger()
router = APIRouter()

UNAUTHORIZED_CLOSE_CODE = 4001


def _registry(app) -> ConnectionRegistry:
    return app.state.registry


# ─── Broadcast ingress (API → hub) ──────────────────────


@router.post("/api/broadcast", response_model=BroadcastResult)
async def broadcast(
    message: BroadcastMessage,
    request: Request,
    x_internal_api_key: Optional[str] = Header(None),
):
    """Fan a ChangeEvent out to its group, or to all-orders plus everyone."""
    expected = request.app.state.settings.internal_api_key
    if expected and not secrets.compare_digest(x_internal_api_key or "", expected):
        logger.warning("hub.broadcast_rejected", method=message.method)
        raise HTTPException(status_code=401, detail="Invalid internal API key")

    event = ChangeEvent(message.method, message.data, group=message.group or None)
    result = await _registry(request.app).fan_out(event)
    return BroadcastResult(
        targeted=result.targeted,
        fallback=result.fallback,
        failed=result.failed,
    )


# ─── Client connections ─────────────────────────────────


def _parse_invocation(message: dict) -> HubInvocation:
    """Text or binary frame carrying one JSON invocation."""
    raw = message.get("text")
    if raw is None:
        raw = (message.get("bytes") or b"").decode("utf-8")
    return HubInvocation.model_validate(json.loads(raw))


async def _invoke(registry: ConnectionRegistry, conn: HubConnection, call: HubInvocation) -> dict:
    """Apply one hub method for the calling connection and build the reply."""
    if call.method in (JOIN_ORDER_GROUP, LEAVE_ORDER_GROUP):
        if not call.args or not str(call.args[0]).strip():
            return {"type": "error", "id": call.id, "method": call.method,
                    "error": "Order ID is required"}
        group = order_group(str(call.args[0]).strip())
    elif call.method in (JOIN_ALL_ORDERS_GROUP, LEAVE_ALL_ORDERS_GROUP):
        group = ALL_ORDERS_GROUP
    else:
        return {"type": "error", "id": call.id, "method": call.method,
                "error": f"Unknown hub method '{call.method}'"}

    if call.method in (JOIN_ORDER_GROUP, JOIN_ALL_ORDERS_GROUP):
        await registry.join(conn.connection_id, group)
    else:
        await registry.leave(conn.connection_id, group)
    return {"type": "completion", "id": call.id, "method": call.method, "group": group}


@router.websocket("/hubs/notifications")
async def notifications_hub(websocket: WebSocket):
    """Long-lived client connection. Anonymous unless ORDERHUB_HUB_REQUIRE_AUTH."""
    settings = websocket.app.state.settings
    registry = _registry(websocket.app)

    # ── Authentication ──────────────────────────────────────
    token = websocket.query_params.get("access_token")
    identity = None

    if token:
        identity = resolve_identity(token, websocket.app.state.tokens)
        if identity is None:
            await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason="Invalid or expired token")
            return
    elif settings.hub_require_auth:
        await websocket.close(code=UNAUTHORIZED_CLOSE_CODE, reason="Authentication required")
        return

    # ── Connection accepted ─────────────────────────────────
    await websocket.accept()
    conn = await registry.connect(websocket.send_json, identity=identity)

    try:
        await conn.deliver({"type": "connected", "connectionId": conn.connection_id})
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            try:
                call = _parse_invocation(message)
            except (json.JSONDecodeError, UnicodeDecodeError, ValidationError):
                await conn.deliver({"type": "error", "error": "Malformed message"})
                continue

            if call.type == "ping":
                await conn.deliver({"type": "pong"})
                continue

            await conn.deliver(await _invoke(registry, conn, call))
    except WebSocketDisconnect:
        pass
    finally:
        await registry.disconnect(conn.connection_id)
        if (
            websocket.client_state == WebSocketState.CONNECTED
            and websocket.application_state == WebSocketState.CONNECTED
        ):
            await websocket.close()
