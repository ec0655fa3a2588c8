"""Order service — business logic for orders and their items.

Learn: Service layer separates business logic from the GraphQL resolvers.
Every method takes the caller's identity as an explicit argument and runs,
in this order:

1. authentication (no identity → AuthenticationRequiredError)
2. input validation (InvalidInputError)
3. lookup (NotFoundError)
4. authorization via the injected policy (ForbiddenError)
5. the store write + commit
6. the change broadcast

Nothing is written before step 4 passes, and nothing is broadcast unless
step 5 committed. Broadcast failures never reach the caller.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderhub.auth.dependencies import CurrentIdentity
from orderhub.auth.policy import AuthorizationPolicy
from orderhub.db.models import Order, OrderItem, OrderStatus, utcnow
from orderhub.errors import InvalidInputError, NotFoundError
from orderhub.realtime.dispatcher import NotificationDispatcher

logger = structlog.get_logger()

NOT_AUTHENTICATED = "User not authenticated"
MAX_TITLE_LENGTH = 200
MAX_ITEM_NAME_LENGTH = 200


def _required(value: Optional[str], message: str) -> str:
    if value is None or not value.strip():
        raise InvalidInputError(message)
    return value.strip()


class OrderService:
    """Business logic for orders and order items."""

    def __init__(
        self,
        db: AsyncSession,
        policy: AuthorizationPolicy,
        notifier: NotificationDispatcher,
    ):
        self.db = db
        self.policy = policy
        self.notifier = notifier

    # ─── Queries ────────────────────────────────────────

    async def list_orders(self, identity: Optional[CurrentIdentity]) -> list[Order]:
        """Admins see every order; everyone else sees their own."""
        identity = self.policy.require_identity(identity)
        q = select(Order).options(
            selectinload(Order.items), selectinload(Order.created_by)
        )
        owner_id = self.policy.owner_scope(identity)
        if owner_id is not None:
            q = q.where(Order.created_by_id == owner_id)
        q = q.order_by(Order.created_at.desc())
        result = await self.db.execute(q)
        return list(result.scalars().all())

    async def get_order(
        self, identity: Optional[CurrentIdentity], order_id: str
    ) -> Optional[Order]:
        identity = self.policy.require_identity(identity)
        order = await self._load_order(order_id)
        if order is None:
            return None
        self.policy.ensure_can_view(identity, order.created_by_id)
        return order

    # ─── Orders ─────────────────────────────────────────

    async def create_order(
        self,
        identity: Optional[CurrentIdentity],
        title: Optional[str],
        description: Optional[str] = "",
    ) -> Order:
        """Create a Draft order owned by the caller."""
        identity = self.policy.require_identity(identity, NOT_AUTHENTICATED)
        title = self._valid_title(_required(title, "Title is required"))

        now = utcnow()
        order = Order(
            title=title,
            description=(description or "").strip(),
            status=OrderStatus.DRAFT,
            created_by_id=identity.user_id,
            created_at=now,
            updated_at=now,
        )
        self.db.add(order)
        await self.db.commit()

        order = await self._load_order(order.id)
        logger.info("orders.created", order_id=order.id, user_id=identity.user_id)
        await self.notifier.broadcast_created(order)
        return order

    async def update_order(
        self,
        identity: Optional[CurrentIdentity],
        order_id: Optional[str],
        *,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[OrderStatus] = None,
    ) -> Order:
        """Partial update. Only the fields passed (not None) change."""
        identity = self.policy.require_identity(identity, NOT_AUTHENTICATED)
        order_id = _required(order_id, "Order ID is required")
        if title is not None:
            title = self._valid_title(_required(title, "Title is required"))

        order = await self._load_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        self.policy.ensure_can_modify(identity, order.created_by_id, action="update")

        changes = {}
        if title is not None:
            order.title = title
            changes["title"] = title
        if description is not None:
            order.description = description.strip()
            changes["description"] = order.description
        if status is not None:
            order.status = OrderStatus(status)
            changes["status"] = order.status.value
        order.updated_at = utcnow()
        await self.db.commit()

        order = await self._load_order(order_id)
        logger.info(
            "orders.updated",
            order_id=order_id,
            user_id=identity.user_id,
            changes=sorted(changes),
        )
        await self.notifier.broadcast_updated(order)
        return order

    async def delete_order(
        self, identity: Optional[CurrentIdentity], order_id: Optional[str]
    ) -> bool:
        identity = self.policy.require_identity(identity, NOT_AUTHENTICATED)
        order_id = _required(order_id, "Order ID is required")

        order = await self._load_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        self.policy.ensure_can_delete(identity, order.created_by_id)

        await self.db.delete(order)
        await self.db.commit()

        logger.info("orders.deleted", order_id=order_id, user_id=identity.user_id)
        await self.notifier.broadcast_deleted(order_id)
        return True

    # ─── Items ──────────────────────────────────────────

    async def add_item(
        self,
        identity: Optional[CurrentIdentity],
        order_id: Optional[str],
        name: Optional[str],
        quantity: int,
        price,
    ) -> OrderItem:
        identity = self.policy.require_identity(identity, NOT_AUTHENTICATED)
        order_id = _required(order_id, "Order ID is required")
        name = _required(name, "Item name is required")
        if len(name) > MAX_ITEM_NAME_LENGTH:
            raise InvalidInputError(
                f"Item name must be {MAX_ITEM_NAME_LENGTH} characters or fewer"
            )
        if quantity is None or quantity <= 0:
            raise InvalidInputError("Quantity must be greater than zero")
        price = self._valid_price(price)

        order = await self._load_order(order_id)
        if order is None:
            raise NotFoundError(f"Order {order_id} not found")
        self.policy.ensure_can_modify(identity, order.created_by_id, action="add items to")

        item = OrderItem(order_id=order.id, name=name, quantity=quantity, price=price)
        order.items.append(item)
        order.updated_at = utcnow()
        await self.db.commit()

        order = await self._load_order(order_id)
        logger.info(
            "orders.item_added",
            order_id=order_id,
            item_id=item.id,
            user_id=identity.user_id,
        )
        await self.notifier.broadcast_updated(order)
        return item

    async def remove_item(
        self, identity: Optional[CurrentIdentity], item_id: Optional[str]
    ) -> bool:
        identity = self.policy.require_identity(identity, NOT_AUTHENTICATED)
        item_id = _required(item_id, "Item ID is required")

        item = await self.db.get(OrderItem, item_id)
        if item is None:
            raise NotFoundError(f"Item {item_id} not found")

        order = await self._load_order(item.order_id)
        if order is None:
            # Parent vanished in between; nothing left to notify about.
            await self.db.delete(item)
            await self.db.commit()
            return True

        self.policy.ensure_can_modify(
            identity, order.created_by_id, action="remove items from"
        )

        order.items.remove(item)
        order.updated_at = utcnow()
        await self.db.commit()

        order = await self._load_order(order.id)
        logger.info(
            "orders.item_removed",
            order_id=item.order_id,
            item_id=item_id,
            user_id=identity.user_id,
        )
        if order is not None:
            await self.notifier.broadcast_updated(order)
        return True

    # ─── Helpers ────────────────────────────────────────

    async def _load_order(self, order_id: str) -> Optional[Order]:
        """Fetch an order with items and owner, refreshing any cached copy."""
        q = (
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items), selectinload(Order.created_by))
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(q)
        return result.scalars().first()

    @staticmethod
    def _valid_title(title: str) -> str:
        if len(title) > MAX_TITLE_LENGTH:
            raise InvalidInputError(f"Title must be {MAX_TITLE_LENGTH} characters or fewer")
        return title

    @staticmethod
    def _valid_price(price) -> Decimal:
        if price is None:
            raise InvalidInputError("Price is required")
        try:
            value = Decimal(str(price))
        except InvalidOperation:
            raise InvalidInputError("Price must be a number")
        if not value.is_finite():
            raise InvalidInputError("Price must be a number")
        if value < 0:
            raise InvalidInputError("Price cannot be negative")
        return value.quantize(Decimal("0.01"))
