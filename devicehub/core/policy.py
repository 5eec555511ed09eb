# devicehub/core/policy.py
"""Who may do what.

Every role/ownership decision in the service goes through `authorize`, so the
rules live in one table instead of being repeated per endpoint.
"""
import logging
from enum import Enum
from typing import Optional, Any

from devicehub.core.errors import Forbidden
from devicehub.models.user import User, UserRole

logger = logging.getLogger(__name__)

ADMIN_ROLES = frozenset({UserRole.ADMIN, UserRole.SUPERUSER})


class Action(str, Enum):
    LIST_ALL_REQUESTS = "list_all_requests"
    VIEW_REQUEST = "view_request"
    TRANSITION_BORROW = "transition_borrow"
    TRANSITION_RENEWAL = "transition_renewal"
    CREATE_RENEWAL = "create_renewal"
    CREATE_RETURN = "create_return"
    VIEW_USER = "view_user"
    EDIT_USER = "edit_user"
    MANAGE_USERS = "manage_users"
    MANAGE_DEVICES = "manage_devices"
    MANAGE_DEPARTMENTS = "manage_departments"
    VIEW_AUDIT = "view_audit"
    DELETE_USER = "delete_user"
    RESET_PASSWORD = "reset_password"
    TOGGLE_USER_STATUS = "toggle_user_status"


# Rule per action: "admin" (admin or superuser), "superuser", "owner",
# or "owner_or_admin" (needs the resource owner id).
_RULES = {
    Action.LIST_ALL_REQUESTS: "admin",
    Action.VIEW_REQUEST: "owner_or_admin",
    Action.TRANSITION_BORROW: "admin",
    Action.TRANSITION_RENEWAL: "admin",
    Action.CREATE_RENEWAL: "owner",
    Action.CREATE_RETURN: "owner_or_admin",
    Action.VIEW_USER: "owner_or_admin",
    Action.EDIT_USER: "owner_or_admin",
    Action.MANAGE_USERS: "admin",
    Action.MANAGE_DEVICES: "admin",
    Action.MANAGE_DEPARTMENTS: "admin",
    Action.VIEW_AUDIT: "admin",
    Action.DELETE_USER: "superuser",
    Action.RESET_PASSWORD: "superuser",
    Action.TOGGLE_USER_STATUS: "superuser",
}

_DENIAL_MESSAGES = {
    Action.VIEW_REQUEST: "You can only view your own requests",
    Action.TRANSITION_BORROW: "Only administrators can change request status",
    Action.TRANSITION_RENEWAL: "Only administrators can review renewal requests",
    Action.CREATE_RENEWAL: "You can only request renewal for your own loans",
    Action.CREATE_RETURN: "You can only return your own loans",
    Action.VIEW_USER: "You can only view your own profile",
    Action.EDIT_USER: "You can only edit your own profile",
    Action.DELETE_USER: "Only superusers can delete users",
    Action.RESET_PASSWORD: "Only superusers can reset passwords",
    Action.TOGGLE_USER_STATUS: "Only superusers can change account status",
}


def is_admin(user: User) -> bool:
    return user.role in ADMIN_ROLES


def is_superuser(user: User) -> bool:
    return user.role == UserRole.SUPERUSER


def _same_id(a: Any, b: Any) -> bool:
    return a is not None and b is not None and str(a) == str(b)


def is_allowed(actor: User, action: Action, owner_id: Optional[Any] = None) -> bool:
    rule = _RULES[action]
    if rule == "admin":
        return is_admin(actor)
    if rule == "superuser":
        return is_superuser(actor)
    if rule == "owner":
        return _same_id(actor.id, owner_id)
    if rule == "owner_or_admin":
        return is_admin(actor) or _same_id(actor.id, owner_id)
    raise ValueError(f"Unknown rule {rule!r} for {action}")


def authorize(actor: User, action: Action, owner_id: Optional[Any] = None) -> None:
    """Raise Forbidden unless `actor` may perform `action` on a resource owned by `owner_id`."""
    if not is_allowed(actor, action, owner_id):
        logger.warning(
            f"Forbidden: user '{actor.email}' ({actor.role.value}) attempted {action.value}"
            + (f" on resource owned by {owner_id}" if owner_id is not None else "")
        )
        raise Forbidden(_DENIAL_MESSAGES.get(action, "Admin access required"))


def can_assign_role(actor: User, role: UserRole) -> bool:
    """Superusers may hand out any role, admins only plain user accounts."""
    if is_superuser(actor):
        return True
    if is_admin(actor):
        return role == UserRole.USER
    return False


def owner_filter(actor: User, field: str = "user_id") -> dict:
    """Listing filter: admins see everything, everyone else their own records."""
    if is_allowed(actor, Action.LIST_ALL_REQUESTS):
        return {}
    return {field: actor.id}
