"""GraphQL queries and mutations.

Learn: resolvers are thin. They pull the caller's identity and the services
out of the per-request context and hand the identity to the service
explicitly. Two error styles:

- Queries let OrderHubError propagate; the router turns it into an entry
  in `errors` with `extensions.code`.
- Mutations catch OrderHubError and return it as errorMessage/errorCode
  on the payload. Anything unexpected still propagates.
"""

from typing import Optional

import strawberry
from strawberry.types import Info

from orderhub.api.types import (
    AddOrderItemPayload,
    CreateOrderPayload,
    DeleteOrderPayload,
    LoginPayload,
    OrderItemType,
    OrderStatsType,
    OrderStatus,
    OrderType,
    RemoveOrderItemPayload,
    UpdateOrderPayload,
    UserType,
)
from orderhub.errors import NotFoundError, OrderHubError


@strawberry.type
class Query:
    @strawberry.field(description="Orders visible to the caller. Admins see all.")
    async def orders(self, info: Info) -> list[OrderType]:
        ctx = info.context
        orders = await ctx.orders.list_orders(ctx.identity)
        return [OrderType.from_model(o) for o in orders]

    @strawberry.field
    async def order(self, info: Info, id: strawberry.ID) -> Optional[OrderType]:
        ctx = info.context
        order = await ctx.orders.get_order(ctx.identity, id)
        return OrderType.from_model(order) if order else None

    @strawberry.field(description="The authenticated caller.")
    async def me(self, info: Info) -> UserType:
        ctx = info.context
        identity = ctx.policy.require_identity(ctx.identity)
        user = await ctx.users.get_by_id(identity.user_id)
        if user is None:
            raise NotFoundError(f"User {identity.user_id} not found")
        return UserType.from_model(user)

    @strawberry.field
    async def order_stats(self, info: Info) -> OrderStatsType:
        ctx = info.context
        stats = await ctx.stats.order_stats(ctx.identity)
        return OrderStatsType.from_stats(stats)


@strawberry.type
class Mutation:
    @strawberry.mutation
    async def login(self, info: Info, username: str, password: str) -> LoginPayload:
        ctx = info.context
        try:
            user = await ctx.users.authenticate(username, password)
        except OrderHubError as e:
            return LoginPayload(error_message=e.message, error_code=e.code)
        return LoginPayload(token=ctx.tokens.issue_token(user), user=UserType.from_model(user))

    @strawberry.mutation
    async def create_order(
        self, info: Info, title: str, description: Optional[str] = ""
    ) -> CreateOrderPayload:
        ctx = info.context
        try:
            order = await ctx.orders.create_order(ctx.identity, title, description)
        except OrderHubError as e:
            return CreateOrderPayload(error_message=e.message, error_code=e.code)
        return CreateOrderPayload(order=OrderType.from_model(order))

    @strawberry.mutation
    async def update_order(
        self,
        info: Info,
        id: strawberry.ID,
        title: Optional[str] = None,
        description: Optional[str] = None,
        status: Optional[OrderStatus] = None,
    ) -> UpdateOrderPayload:
        ctx = info.context
        try:
            order = await ctx.orders.update_order(
                ctx.identity, id, title=title, description=description, status=status
            )
        except OrderHubError as e:
            return UpdateOrderPayload(error_message=e.message, error_code=e.code)
        return UpdateOrderPayload(order=OrderType.from_model(order))

    @strawberry.mutation
    async def delete_order(self, info: Info, id: strawberry.ID) -> DeleteOrderPayload:
        ctx = info.context
        try:
            success = await ctx.orders.delete_order(ctx.identity, id)
        except OrderHubError as e:
            return DeleteOrderPayload(success=False, error_message=e.message, error_code=e.code)
        return DeleteOrderPayload(success=success)

    @strawberry.mutation
    async def add_order_item(
        self,
        info: Info,
        order_id: strawberry.ID,
        name: str,
        quantity: int,
        price: float,
    ) -> AddOrderItemPayload:
        ctx = info.context
        try:
            item = await ctx.orders.add_item(ctx.identity, order_id, name, quantity, price)
        except OrderHubError as e:
            return AddOrderItemPayload(error_message=e.message, error_code=e.code)
        return AddOrderItemPayload(item=OrderItemType.from_model(item))

    @strawberry.mutation
    async def remove_order_item(
        self, info: Info, item_id: strawberry.ID
    ) -> RemoveOrderItemPayload:
        ctx = info.context
        try:
            success = await ctx.orders.remove_item(ctx.identity, item_id)
        except OrderHubError as e:
            return RemoveOrderItemPayload(success=False, error_message=e.message, error_code=e.code)
        return RemoveOrderItemPayload(success=success)
