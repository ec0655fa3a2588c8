"""Error taxonomy shared by services, resolvers and the GraphQL layer.

Learn: expected failures (auth, validation, not-found) are raised by the
service layer as OrderHubError subclasses. Mutation resolvers turn them into
payload fields; query resolvers let them propagate and the GraphQL router
attaches the code as `extensions.code`. Anything else is INTERNAL_ERROR.
"""

AUTHENTICATION_REQUIRED = "AUTHENTICATION_REQUIRED"
FORBIDDEN = "FORBIDDEN"
VALIDATION_ERROR = "VALIDATION_ERROR"
NOT_FOUND = "NOT_FOUND"
INTERNAL_ERROR = "INTERNAL_ERROR"


class OrderHubError(Exception):
    """Base class for expected, client-facing failures."""

    code = INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class AuthenticationRequiredError(OrderHubError):
    code = AUTHENTICATION_REQUIRED

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message)


class ForbiddenError(OrderHubError):
    code = FORBIDDEN


class InvalidInputError(OrderHubError):
    code = VALIDATION_ERROR


class NotFoundError(OrderHubError):
    code = NOT_FOUND
