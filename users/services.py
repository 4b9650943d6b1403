import logging
from dataclasses import dataclass, field
from typing import FrozenSet, Optional

from backoffice.permissions import Capability, capability_set
from conversations.exceptions import AuthenticationError

from .models import User

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Identity:
    """Authenticated caller attached to a request or a socket connection."""

    id: int
    name: str
    email: str
    role: Optional[str] = None
    permissions: FrozenSet[Capability] = field(default_factory=frozenset)

    def as_summary(self):
        return {'id': self.id, 'name': self.name}


def identity_for_user(user):
    role = user.role
    return Identity(
        id=user.id,
        name=user.full_name,
        email=user.email,
        role=role.name if role else None,
        permissions=capability_set(role.permission_names()) if role else frozenset(),
    )


def load_user(user_id):
    """
    Load a user with its role and granted permissions.

    Raises:
        AuthenticationError: If the user no longer exists
    """
    try:
        user = (
            User.objects.select_related('role')
            .prefetch_related('role__permissions')
            .get(pk=user_id)
        )
    except User.DoesNotExist:
        logger.warning("Token references unknown user %s", user_id)
        raise AuthenticationError("User not found")
    return user, identity_for_user(user)


def load_identity(user_id):
    """Resolve a user id to the caller identity used by the chat layer."""
    return load_user(user_id)[1]
