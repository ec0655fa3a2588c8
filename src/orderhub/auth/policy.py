"""Authorization guard — who may view, change and delete orders.

Learn: the rules live here instead of inside each resolver, and the active
policy is picked by configuration (ORDERHUB_AUTHORIZATION_POLICY):

- admin_delete:    changes need owner-or-admin, delete needs Admin
- owner_or_admin:  changes and delete need owner-or-admin
- authenticated:   any authenticated caller may change or delete

Every check runs before the store is touched. A rejected call leaves the
order exactly as it was.
"""

from typing import Optional

from orderhub.auth.dependencies import CurrentIdentity
from orderhub.errors import AuthenticationRequiredError, ForbiddenError


class AuthorizationPolicy:
    """Base policy: authentication required, owner-or-admin for everything."""

    name = "owner_or_admin"

    def require_identity(
        self,
        identity: Optional[CurrentIdentity],
        message: str = "Authentication required",
    ) -> CurrentIdentity:
        if identity is None:
            raise AuthenticationRequiredError(message)
        return identity

    def owner_scope(self, identity: CurrentIdentity) -> Optional[str]:
        """Owner id to filter listings by, or None to list everything."""
        return None if identity.is_admin else identity.user_id

    def ensure_can_view(self, identity: CurrentIdentity, owner_id: str) -> None:
        if not self._owns_or_admin(identity, owner_id):
            raise ForbiddenError("You can only view your own orders")

    def ensure_can_modify(
        self, identity: CurrentIdentity, owner_id: str, action: str = "update"
    ) -> None:
        """`action` completes "You can only {action} your own orders"."""
        if not self._owns_or_admin(identity, owner_id):
            raise ForbiddenError(f"You can only {action} your own orders")

    def ensure_can_delete(self, identity: CurrentIdentity, owner_id: str) -> None:
        self.ensure_can_modify(identity, owner_id, action="delete")

    @staticmethod
    def _owns_or_admin(identity: CurrentIdentity, owner_id: str) -> bool:
        return identity.is_admin or identity.user_id == owner_id


class OwnerOrAdminPolicy(AuthorizationPolicy):
    name = "owner_or_admin"


class AdminDeletePolicy(AuthorizationPolicy):
    """Deleting is reserved for administrators regardless of ownership."""

    name = "admin_delete"

    def ensure_can_delete(self, identity: CurrentIdentity, owner_id: str) -> None:
        if not identity.is_admin:
            raise ForbiddenError("Only administrators can delete orders")


class AuthenticatedPolicy(AuthorizationPolicy):
    """Any authenticated caller may change or delete any order."""

    name = "authenticated"

    def ensure_can_modify(
        self, identity: CurrentIdentity, owner_id: str, action: str = "update"
    ) -> None:
        return None

    def ensure_can_delete(self, identity: CurrentIdentity, owner_id: str) -> None:
        return None


POLICIES: dict[str, type[AuthorizationPolicy]] = {
    AdminDeletePolicy.name: AdminDeletePolicy,
    OwnerOrAdminPolicy.name: OwnerOrAdminPolicy,
    AuthenticatedPolicy.name: AuthenticatedPolicy,
}


def build_policy(name: str) -> AuthorizationPolicy:
    try:
        return POLICIES[name]()
    except KeyError:
        raise ValueError(
            f"Unknown authorization policy '{name}'. "
            f"Choose one of: {', '.join(sorted(POLICIES))}"
        )
