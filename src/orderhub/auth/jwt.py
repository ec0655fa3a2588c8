"""JWT token creation and verification.

Learn: JWT (JSON Web Token) provides stateless authentication.
There is no revocation list — a token is valid exactly as long as its
signature checks out and its `exp` has not passed. Claims are a snapshot
of the user at login; role changes reach clients on their next login.

Validation is strict: signature, issuer, audience and expiry with zero
clock skew. Every segment must also be canonical base64url, so flipping
the unused low bits of the last character is caught too.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
import structlog
from jwt.utils import base64url_decode, base64url_encode

from orderhub.config import Settings
from orderhub.db.models import User, UserRole

logger = structlog.get_logger()

# Standard role claim type understood by .NET-style consumers, plus a
# plain "role" claim for browser clients.
ROLE_CLAIM_TYPE = "http://schemas.microsoft.com/ws/2008/06/identity/claims/role"
ROLE_CLAIM = "role"


class TokenError(Exception):
    """Raised when token verification fails."""


@dataclass(frozen=True)
class TokenClaims:
    """The identity assertions carried by a validated token."""

    subject: str
    username: str
    email: str
    role: UserRole
    token_id: str
    issuer: str
    audience: str
    issued_at: datetime
    expires_at: datetime


class TokenService:
    """Issues and validates HMAC-SHA256 signed access tokens."""

    def __init__(
        self,
        signing_key: str,
        issuer: str,
        audience: str,
        lifetime_minutes: int = 60,
        algorithm: str = "HS256",
    ):
        self.signing_key = signing_key
        self.issuer = issuer
        self.audience = audience
        self.lifetime = timedelta(minutes=lifetime_minutes)
        self.algorithm = algorithm

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            signing_key=settings.jwt_signing_key,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            lifetime_minutes=settings.token_lifetime_minutes,
            algorithm=settings.jwt_algorithm,
        )

    def issue_token(self, user: User, *, now: Optional[datetime] = None) -> str:
        """Create a signed access token for a user."""
        issued = now or datetime.now(timezone.utc)
        role = UserRole(user.role).value
        payload = {
            "sub": user.id,
            "unique_name": user.username,
            "email": user.email,
            ROLE_CLAIM_TYPE: role,
            ROLE_CLAIM: role,
            "jti": str(uuid.uuid4()),
            "iss": self.issuer,
            "aud": self.audience,
            "iat": issued,
            "exp": issued + self.lifetime,
        }
        return jwt.encode(payload, self.signing_key, algorithm=self.algorithm)

    def decode_token(self, token: str) -> dict:
        """Verify and decode a token.

        Returns the payload dict on success.
        Raises TokenError on failure.
        """
        _ensure_canonical(token)
        try:
            return jwt.decode(
                token,
                self.signing_key,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                audience=self.audience,
                leeway=0,
                options={"require": ["sub", "exp", "iss", "aud"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenError("Token has expired")
        except jwt.InvalidTokenError as e:
            raise TokenError(f"Invalid token: {e}")

    def validate_token(self, token: str) -> Optional[TokenClaims]:
        """Return the token's claims, or None if it is unusable for any reason."""
        try:
            return claims_from_payload(self.decode_token(token))
        except TokenError as e:
            logger.warning("auth.token_rejected", reason=str(e))
            return None

    def read_unverified(self, token: str) -> Optional[TokenClaims]:
        """Parse claims without checking signature or lifetime.

        Only for deployments where a gateway in front of the API has already
        validated the token.
        """
        try:
            payload = jwt.decode(
                token,
                options={"verify_signature": False, "verify_exp": False},
                algorithms=[self.algorithm],
            )
            return claims_from_payload(payload)
        except (jwt.InvalidTokenError, TokenError) as e:
            logger.warning("auth.token_unparsable", reason=str(e))
            return None


def claims_from_payload(payload: dict) -> TokenClaims:
    """Map a decoded payload to TokenClaims. Unknown roles fall back to User."""
    subject = payload.get("sub")
    if not subject:
        raise TokenError("Invalid token: missing subject")

    raw_role = payload.get(ROLE_CLAIM_TYPE) or payload.get(ROLE_CLAIM)
    try:
        role = UserRole(raw_role)
    except ValueError:
        role = UserRole.USER

    return TokenClaims(
        subject=str(subject),
        username=payload.get("unique_name", ""),
        email=payload.get("email", ""),
        role=role,
        token_id=payload.get("jti", ""),
        issuer=payload.get("iss", ""),
        audience=_first_audience(payload.get("aud")),
        issued_at=_timestamp(payload.get("iat")),
        expires_at=_timestamp(payload.get("exp")),
    )


def _ensure_canonical(token: str) -> None:
    segments = token.split(".")
    if len(segments) != 3:
        raise TokenError("Invalid token: expected three segments")
    for segment in segments:
        try:
            raw = base64url_decode(segment.encode("ascii"))
        except (ValueError, UnicodeEncodeError):
            raise TokenError("Invalid token: bad base64url segment")
        if base64url_encode(raw).decode("ascii") != segment:
            raise TokenError("Invalid token: non-canonical segment")


def _first_audience(aud) -> str:
    if isinstance(aud, (list, tuple)):
        return aud[0] if aud else ""
    return aud or ""


def _timestamp(value) -> datetime:
    if value is None:
        return datetime.fromtimestamp(0, tz=timezone.utc)
    # unverified payloads are not type-checked by PyJWT
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TokenError(f"Invalid token: timestamp must be numeric, got {type(value).__name__}")
    try:
        return datetime.fromtimestamp(int(value), tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise TokenError("Invalid token: timestamp out of range")
