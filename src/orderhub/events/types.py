"""Change event types and hub group names.

Learn: Centralizing event and group names as constants prevents typos and
keeps the API (which sends) and the hub (which fans out) in agreement.

A ChangeEvent is a transport message only. It is built after a committed
write, handed to the dispatcher, and forgotten. Nothing stores it.
"""

from dataclasses import dataclass
from typing import Any, Optional

# ─── Server → client methods ─────────────────────────────

ORDER_CREATED = "OrderCreated"
ORDER_UPDATED = "OrderUpdated"
ORDER_DELETED = "OrderDeleted"

EVENT_METHODS = (ORDER_CREATED, ORDER_UPDATED, ORDER_DELETED)

# ─── Client → server hub methods ─────────────────────────

JOIN_ORDER_GROUP = "JoinOrderGroup"
LEAVE_ORDER_GROUP = "LeaveOrderGroup"
JOIN_ALL_ORDERS_GROUP = "JoinAllOrdersGroup"
LEAVE_ALL_ORDERS_GROUP = "LeaveAllOrdersGroup"

# ─── Groups ──────────────────────────────────────────────

ALL_ORDERS_GROUP = "all-orders"


def order_group(order_id: str) -> str:
    """Group that a detail view of one order subscribes to."""
    return f"order-{order_id}"


@dataclass(frozen=True)
class ChangeEvent:
    """One message for the hub. group=None means the global destination."""

    method: str
    data: Any = None
    group: Optional[str] = None

    @property
    def is_global(self) -> bool:
        return not self.group

    def to_wire(self) -> dict:
        """Body for POST /api/broadcast."""
        return {"method": self.method, "group": self.group, "data": self.data}
