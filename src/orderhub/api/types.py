"""GraphQL object types and mutation payloads.

Learn: strawberry types are plain dataclass-like classes. The ORM models
never leave the service layer directly; each type has a `from_model` that
copies the public fields, so the password hash can't leak into a response.
Amounts are exposed as Float.
"""

from datetime import datetime
from typing import Optional

import strawberry

from orderhub.db import models
from orderhub.services.stats_service import OrderStats

UserRole = strawberry.enum(models.UserRole, name="UserRole")
OrderStatus = strawberry.enum(models.OrderStatus, name="OrderStatus")


@strawberry.type(name="User", description="A user account.")
class UserType:
    id: strawberry.ID
    username: str
    email: str
    role: UserRole
    created_at: datetime

    @classmethod
    def from_model(cls, user: models.User) -> "UserType":
        return cls(
            id=strawberry.ID(user.id),
            username=user.username,
            email=user.email,
            role=user.role,
            created_at=user.created_at,
        )


@strawberry.type(name="OrderItem", description="A line item within an order.")
class OrderItemType:
    id: strawberry.ID
    order_id: strawberry.ID
    name: str
    quantity: int
    price: float
    subtotal: float

    @classmethod
    def from_model(cls, item: models.OrderItem) -> "OrderItemType":
        return cls(
            id=strawberry.ID(item.id),
            order_id=strawberry.ID(item.order_id),
            name=item.name,
            quantity=item.quantity,
            price=float(item.price),
            subtotal=float(item.subtotal),
        )


@strawberry.type(name="Order", description="A purchase order.")
class OrderType:
    id: strawberry.ID
    title: str
    description: str
    status: OrderStatus
    items: list[OrderItemType]
    created_by: Optional[UserType]
    total: float
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, order: models.Order) -> "OrderType":
        return cls(
            id=strawberry.ID(order.id),
            title=order.title,
            description=order.description,
            status=order.status,
            items=[OrderItemType.from_model(i) for i in order.items],
            created_by=UserType.from_model(order.created_by) if order.created_by else None,
            total=float(order.total),
            created_at=order.created_at,
            updated_at=order.updated_at,
        )


@strawberry.type(name="OrderStats")
class OrderStatsType:
    total_orders: int
    total_users: int
    pending_orders: int
    total_value: float

    @classmethod
    def from_stats(cls, stats: OrderStats) -> "OrderStatsType":
        return cls(
            total_orders=stats.total_orders,
            total_users=stats.total_users,
            pending_orders=stats.pending_orders,
            total_value=stats.total_value,
        )


# ─── Payloads ───────────────────────────────────────────
# Expected failures come back here instead of in the GraphQL errors list.


@strawberry.type
class LoginPayload:
    token: Optional[str] = None
    user: Optional[UserType] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None


@strawberry.type
class CreateOrderPayload:
    order: Optional[OrderType] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None


@strawberry.type
class UpdateOrderPayload:
    order: Optional[OrderType] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None


@strawberry.type
class DeleteOrderPayload:
    success: bool = False
    error_message: Optional[str] = None
    error_code: Optional[str] = None


@strawberry.type
class AddOrderItemPayload:
    item: Optional[OrderItemType] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None


@strawberry.type
class RemoveOrderItemPayload:
    success: bool = False
    error_message: Optional[str] = None
    error_code: Optional[str] = None
