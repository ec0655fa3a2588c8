"""Caller identity resolution.

Learn: the identity is resolved once per request from the Authorization
header and then passed explicitly to every service call that needs it.
Nothing reads "the current user" from ambient state, so concurrent requests
can never see each other's identity.

No token, a bad token, or an expired token all mean the same thing: no
identity. There is no privileged default.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from orderhub.auth.jwt import TokenClaims, TokenService
from orderhub.db.models import UserRole


@dataclass(frozen=True)
class CurrentIdentity:
    """The authenticated principal making a request."""

    user_id: str
    username: str = ""
    email: str = ""
    role: UserRole = UserRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @classmethod
    def from_claims(cls, claims: TokenClaims) -> "CurrentIdentity":
        return cls(
            user_id=claims.subject,
            username=claims.username,
            email=claims.email,
            role=claims.role,
        )


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    """Extract the token from an `Authorization: Bearer ...` header value."""
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer":
        return None
    return token.strip() or None


def resolve_identity(
    token: Optional[str],
    tokens: TokenService,
    *,
    skip_validation: bool = False,
) -> Optional[CurrentIdentity]:
    """Turn a raw token into an identity, or None."""
    if not token:
        return None
    if skip_validation:
        claims = tokens.read_unverified(token)
    else:
        claims = tokens.validate_token(token)
    if claims is None:
        return None
    return CurrentIdentity.from_claims(claims)


async def get_current_identity_optional(
    request: Request,
    authorization: Optional[str] = Header(None),
) -> Optional[CurrentIdentity]:
    """FastAPI dependency — the caller's identity, or None when anonymous."""
    settings = request.app.state.settings
    return resolve_identity(
        bearer_token(authorization),
        request.app.state.tokens,
        skip_validation=settings.skip_jwt_validation,
    )
