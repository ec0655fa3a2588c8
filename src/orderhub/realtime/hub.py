"""Connection registry and fan-out for the real-time hub.

Learn: the registry is the hub's only shared state — a table of
connection id → connection plus group name → member ids. Joins, leaves,
connects and disconnects from many sockets mutate it while every broadcast
reads it, so all access goes through one asyncio.Lock. Sends happen
outside the lock from a snapshot of the recipients.

Delivery for an event is an explicit two-list plan:
- targeted:  members of event.group, or of "all-orders" for global events
- fallback:  every connection, for global events only

A connection that joined "all-orders" therefore receives a global event
twice. That redundancy is intended; clients de-duplicate by order id.
"""

import asyncio
import itertools
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

import structlog

from orderhub.auth.dependencies import CurrentIdentity
from orderhub.events.types import ALL_ORDERS_GROUP, ChangeEvent

logger = structlog.get_logger()

Sender = Callable[[dict], Awaitable[None]]

_connection_ids = itertools.count(1)


def next_connection_id() -> str:
    return f"conn-{next(_connection_ids)}"


@dataclass(eq=False)
class HubConnection:
    """One live client connection."""

    connection_id: str
    send: Sender
    identity: Optional[CurrentIdentity] = None
    groups: set[str] = field(default_factory=set)
    _send_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)

    async def deliver(self, frame: dict) -> None:
        # one frame at a time per socket, even when fan-outs overlap
        async with self._send_lock:
            await self.send(frame)


@dataclass
class DeliveryPlan:
    targeted: list[HubConnection]
    fallback: list[HubConnection]

    @property
    def recipients(self) -> int:
        return len(self.targeted) + len(self.fallback)


@dataclass
class FanOutResult:
    targeted: int = 0
    fallback: int = 0
    failed: int = 0


def event_frame(event: ChangeEvent) -> dict:
    """What a client receives for one event."""
    return {"type": "event", "method": event.method, "group": event.group, "data": event.data}


class ConnectionRegistry:
    """Concurrency-safe table of connections and group memberships."""

    def __init__(self, send_timeout: Optional[float] = None):
        self.send_timeout = send_timeout
        self._lock = asyncio.Lock()
        self._connections: dict[str, HubConnection] = {}
        self._groups: dict[str, set[str]] = {}

    # ─── Lifecycle ──────────────────────────────────────

    async def connect(
        self,
        send: Sender,
        identity: Optional[CurrentIdentity] = None,
        connection_id: Optional[str] = None,
    ) -> HubConnection:
        conn = HubConnection(
            connection_id=connection_id or next_connection_id(),
            send=send,
            identity=identity,
        )
        async with self._lock:
            self._connections[conn.connection_id] = conn
        logger.info(
            "hub.connected",
            connection_id=conn.connection_id,
            user_id=identity.user_id if identity else None,
        )
        return conn

    async def disconnect(self, connection_id: str) -> None:
        async with self._lock:
            conn = self._connections.pop(connection_id, None)
            if conn is None:
                return
            for group in conn.groups:
                self._remove_member(group, connection_id)
            conn.groups.clear()
        logger.info("hub.disconnected", connection_id=connection_id)

    # ─── Membership ─────────────────────────────────────

    async def join(self, connection_id: str, group: str) -> bool:
        async with self._lock:
            conn = self._connections.get(connection_id)
            if conn is None:
                return False
            conn.groups.add(group)
            self._groups.setdefault(group, set()).add(connection_id)
        logger.info("hub.group_joined", connection_id=connection_id, group=group)
        return True

    async def leave(self, connection_id: str, group: str) -> bool:
        async with self._lock:
            conn = self._connections.get(connection_id)
            if conn is None:
                return False
            conn.groups.discard(group)
            self._remove_member(group, connection_id)
        logger.info("hub.group_left", connection_id=connection_id, group=group)
        return True

    def _remove_member(self, group: str, connection_id: str) -> None:
        members = self._groups.get(group)
        if members is None:
            return
        members.discard(connection_id)
        if not members:
            del self._groups[group]

    async def members(self, group: str) -> set[str]:
        async with self._lock:
            return set(self._groups.get(group, ()))

    async def groups_of(self, connection_id: str) -> set[str]:
        async with self._lock:
            conn = self._connections.get(connection_id)
            return set(conn.groups) if conn else set()

    async def connection_count(self) -> int:
        async with self._lock:
            return len(self._connections)

    # ─── Fan-out ────────────────────────────────────────

    async def plan(self, event: ChangeEvent) -> DeliveryPlan:
        async with self._lock:
            if not event.is_global:
                return DeliveryPlan(targeted=self._members_of(event.group), fallback=[])
            return DeliveryPlan(
                targeted=self._members_of(ALL_ORDERS_GROUP),
                fallback=list(self._connections.values()),
            )

    def _members_of(self, group: str) -> list[HubConnection]:
        return [
            self._connections[cid]
            for cid in self._groups.get(group, ())
            if cid in self._connections
        ]

    async def fan_out(self, event: ChangeEvent) -> FanOutResult:
        """Send an event to every connection in its delivery plan."""
        plan = await self.plan(event)
        frame = event_frame(event)
        result = FanOutResult(targeted=len(plan.targeted), fallback=len(plan.fallback))

        # a stalled socket must not hold up the broadcast request
        sends = [
            asyncio.wait_for(conn.deliver(frame), self.send_timeout)
            for conn in plan.targeted + plan.fallback
        ]
        outcomes = await asyncio.gather(*sends, return_exceptions=True)
        for conn, outcome in zip(plan.targeted + plan.fallback, outcomes):
            if isinstance(outcome, Exception):
                result.failed += 1
                logger.warning(
                    "hub.send_failed",
                    connection_id=conn.connection_id,
                    method=event.method,
                    error=str(outcome) or type(outcome).__name__,
                )

        logger.info(
            "hub.fanned_out",
            method=event.method,
            group=event.group or "all",
            targeted=result.targeted,
            fallback=result.fallback,
            failed=result.failed,
        )
        return result

    def snapshot(self) -> dict[str, Any]:
        """Group sizes for health/debug output. Not locked; approximate."""
        return {group: len(members) for group, members in self._groups.items()}
