"""Dashboard statistics.

Learn: the four aggregates are independent, so they run concurrently, each
on its own session from the session factory. An AsyncSession is not safe
to share between concurrent tasks.
"""

import asyncio
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker

from orderhub.auth.dependencies import CurrentIdentity
from orderhub.auth.policy import AuthorizationPolicy
from orderhub.db.models import Order, OrderItem, OrderStatus, User

logger = structlog.get_logger()


@dataclass(frozen=True)
class OrderStats:
    total_orders: int
    total_users: int
    pending_orders: int
    total_value: float


class StatsService:
    def __init__(self, session_factory: async_sessionmaker, policy: AuthorizationPolicy):
        self.session_factory = session_factory
        self.policy = policy

    async def order_stats(self, identity: Optional[CurrentIdentity]) -> OrderStats:
        self.policy.require_identity(identity)

        total_orders, total_users, pending_orders, total_value = await asyncio.gather(
            self._scalar(select(func.count(Order.id))),
            self._scalar(select(func.count(User.id))),
            self._scalar(
                select(func.count(Order.id)).where(Order.status == OrderStatus.PENDING)
            ),
            self._scalar(
                select(func.coalesce(func.sum(OrderItem.price * OrderItem.quantity), 0))
            ),
        )
        return OrderStats(
            total_orders=int(total_orders or 0),
            total_users=int(total_users or 0),
            pending_orders=int(pending_orders or 0),
            total_value=float(Decimal(str(total_value or 0)).quantize(Decimal("0.01"))),
        )

    async def _scalar(self, stmt):
        async with self.session_factory() as session:
            result = await session.execute(stmt)
            return result.scalar_one()
