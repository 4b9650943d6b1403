import logging
from enum import Enum

from rest_framework.permissions import BasePermission

logger = logging.getLogger(__name__)

SUPERADMIN_ROLE = 'superadmin'


class Capability(str, Enum):
    """Permission names a role can be granted."""

    MESSAGE_READ = 'message:read'
    MESSAGE_CREATE = 'message:create'
    MESSAGE_UPDATE = 'message:update'
    MESSAGE_DELETE = 'message:delete'
    MESSAGE_MANAGE = 'message:manage'

    USER_READ = 'user:read'
    USER_UPDATE = 'user:update'
    USER_DELETE = 'user:delete'
    ROLE_READ = 'role:read'
    ROLE_CREATE = 'role:create'
    ROLE_UPDATE = 'role:update'
    ROLE_DELETE = 'role:delete'


def capability_set(names):
    """
    Build a capability set from permission names.

    Names that are not known capabilities are dropped with a warning, so a
    role granted a misspelled permission shows up in the logs.
    """
    capabilities = set()
    unknown = []
    for name in names or ():
        try:
            capabilities.add(Capability(name))
        except ValueError:
            unknown.append(name)
    if unknown:
        logger.warning("Ignoring unknown permissions: %s", ", ".join(map(str, unknown)))
    return frozenset(capabilities)


def allowed(role, permissions, required):
    """Return True when the role or the granted permissions cover ``required``."""
    if role == SUPERADMIN_ROLE:
        return True
    try:
        required = Capability(required)
    except ValueError:
        return False
    return required in permissions


def require_capability(capability):
    """
    Build a DRF permission class that checks ``capability`` against the
    authenticated user's role and permission set.
    """

    class HasCapability(BasePermission):
        message = 'Insufficient permissions'

        def has_permission(self, request, view):
            user = getattr(request, 'user', None)
            if user is None or not getattr(user, 'is_authenticated', False):
                return False
            identity = getattr(request, 'auth', None)
            if identity is None:
                return False
            return allowed(identity.role, identity.permissions, capability)

    HasCapability.__name__ = f"Has{Capability(capability).name.title().replace('_', '')}"
    return HasCapability
