"""Pydantic schemas for the denormalized order snapshot sent to the hub.

Learn: the snapshot is taken from the freshly committed order, with the
total and per-item subtotals already computed. The user part only carries
public fields, never the password hash.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from orderhub.db.models import Order, OrderItem, OrderStatus, User, UserRole


class _Wire(BaseModel):
    # camelCase on the wire, matching the GraphQL field names clients already use
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UserSnapshot(_Wire):
    id: str
    username: str
    email: str
    role: UserRole

    @classmethod
    def from_model(cls, user: User) -> "UserSnapshot":
        return cls(id=user.id, username=user.username, email=user.email, role=user.role)


class OrderItemSnapshot(_Wire):
    id: str
    name: str
    quantity: int
    price: float
    subtotal: float

    @classmethod
    def from_model(cls, item: OrderItem) -> "OrderItemSnapshot":
        return cls(
            id=item.id,
            name=item.name,
            quantity=item.quantity,
            price=float(item.price),
            subtotal=float(item.subtotal),
        )


class OrderSnapshot(_Wire):
    id: str
    title: str
    description: str
    status: OrderStatus
    items: list[OrderItemSnapshot]
    total: float
    created_by: Optional[UserSnapshot] = None
    updated_at: datetime

    @classmethod
    def from_model(cls, order: Order) -> "OrderSnapshot":
        return cls(
            id=order.id,
            title=order.title,
            description=order.description,
            status=order.status,
            items=[OrderItemSnapshot.from_model(i) for i in order.items],
            total=float(order.total),
            created_by=UserSnapshot.from_model(order.created_by) if order.created_by else None,
            updated_at=order.updated_at,
        )

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class OrderDeletedSnapshot(_Wire):
    order_id: str

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
