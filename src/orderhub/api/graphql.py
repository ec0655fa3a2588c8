"""GraphQL endpoint — schema, per-request context, and error shaping.

Learn: the context getter is an ordinary FastAPI dependency, so it can use
Depends(get_db) and the identity dependency like any route. The identity
is resolved once here and then handed explicitly to every service call.

Errors in the `errors` list always carry `extensions.code`:
- OrderHubError subclasses → their own code and message
- anything else → INTERNAL_ERROR; outside development the message is
  replaced and nothing about the exception reaches the client
"""

from typing import Any, Optional

import strawberry
import structlog
from fastapi import Depends, Request
from graphql import GraphQLError
from sqlalchemy.ext.asyncio import AsyncSession
from strawberry.fastapi import BaseContext, GraphQLRouter
from strawberry.http import GraphQLHTTPResponse
from strawberry.types import ExecutionResult

from orderhub.api.schema import Mutation, Query
from orderhub.auth.dependencies import CurrentIdentity, get_current_identity_optional
from orderhub.auth.jwt import TokenService
from orderhub.auth.policy import AuthorizationPolicy
from orderhub.config import Settings
from orderhub.db.engine import get_db
from orderhub.errors import INTERNAL_ERROR, VALIDATION_ERROR, OrderHubError
from orderhub.services.order_service import OrderService
from orderhub.services.stats_service import StatsService
from orderhub.services.user_service import UserService

logger = structlog.get_logger()

GENERIC_ERROR_MESSAGE = "An unexpected error occurred"


class OrderHubContext(BaseContext):
    def __init__(
        self,
        *,
        identity: Optional[CurrentIdentity],
        policy: AuthorizationPolicy,
        tokens: TokenService,
        orders: OrderService,
        users: UserService,
        stats: StatsService,
    ):
        super().__init__()
        self.identity = identity
        self.policy = policy
        self.tokens = tokens
        self.orders = orders
        self.users = users
        self.stats = stats


async def get_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    identity: Optional[CurrentIdentity] = Depends(get_current_identity_optional),
) -> OrderHubContext:
    state = request.app.state
    return OrderHubContext(
        identity=identity,
        policy=state.policy,
        tokens=state.tokens,
        orders=OrderService(db, state.policy, state.notifier),
        users=UserService(db),
        stats=StatsService(state.session_factory, state.policy),
    )


def format_error(error: GraphQLError, *, expose_internal: bool) -> dict[str, Any]:
    formatted = dict(error.formatted)
    original = error.original_error

    if isinstance(original, OrderHubError):
        code = original.code
    elif original is None:
        # The document itself was rejected (syntax, unknown field, bad variable).
        code = VALIDATION_ERROR
    else:
        code = INTERNAL_ERROR
        if not expose_internal:
            formatted["message"] = GENERIC_ERROR_MESSAGE

    formatted["extensions"] = {**(formatted.get("extensions") or {}), "code": code}
    return formatted


class OrderHubSchema(strawberry.Schema):
    def process_errors(self, errors, execution_context=None) -> None:
        """Log unexpected failures only. Expected ones are part of the API."""
        for error in errors:
            original = error.original_error
            if original is None or isinstance(original, OrderHubError):
                continue
            logger.error(
                "graphql.unexpected_error",
                path=error.path,
                error=str(original),
                exc_info=original,
            )


class OrderHubGraphQLRouter(GraphQLRouter):
    def __init__(self, schema: strawberry.Schema, *, expose_internal_errors: bool = False, **kwargs):
        super().__init__(schema, **kwargs)
        self.expose_internal_errors = expose_internal_errors

    async def process_result(
        self, request: Request, result: ExecutionResult
    ) -> GraphQLHTTPResponse:
        data: GraphQLHTTPResponse = {"data": result.data}
        if result.errors:
            data["errors"] = [
                format_error(e, expose_internal=self.expose_internal_errors)
                for e in result.errors
            ]
        if result.extensions:
            data["extensions"] = result.extensions
        return data


schema = OrderHubSchema(query=Query, mutation=Mutation)


def build_graphql_router(settings: Settings) -> OrderHubGraphQLRouter:
    return OrderHubGraphQLRouter(
        schema,
        context_getter=get_context,
        graphql_ide="graphiql" if settings.is_development else None,
        expose_internal_errors=settings.is_development,
    )
