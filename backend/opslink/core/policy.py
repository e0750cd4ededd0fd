"""Role-based authorization policy."""
from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING

from .config import get_settings
from .errors import Forbidden

if TYPE_CHECKING:
    from opslink.models.user import User

MODERATOR_ROLES = frozenset({"admin", "management"})


class Capability(str, Enum):
    MODERATE = "moderate"
    DELETE_LISTING = "delete_listing"
    VIEW_PRIVATE_PROFILE = "view_private_profile"


def roles_for(capability: Capability) -> frozenset[str]:
    if capability is Capability.DELETE_LISTING and get_settings().delete_requires_management:
        return frozenset({"management"})
    return MODERATOR_ROLES


def is_allowed(user: User | None, capability: Capability) -> bool:
    return user is not None and user.role in roles_for(capability)


def authorize(user: User, capability: Capability) -> None:
    """Raise Forbidden unless the user's role grants the capability."""

    if not is_allowed(user, capability):
        raise Forbidden("Access denied. Admins or management only.")
