"""
Privilege matching engine.

Decides whether a user holds a requested privilege and forwards grants,
revokes and role bookkeeping to the storage port it was constructed
with. The engine keeps no state between calls: every check performs a
fresh read of the user's grants, so it is as consistent as the adapter.

Grant/revoke are fire and forget; batch variants process elements in
input order and do not roll back earlier elements when a later one fails.
"""

import time
from typing import TYPE_CHECKING, Any, List, Optional, Sequence

from shared.errors import EmptyCollectionError, InvalidTypeError, ValidationError
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from .models import MATCHED_FIELDS, PLUCKABLE_FIELDS, GrantedPrivilege, Privilege
from .validation import (
    PrivilegeInput,
    is_non_empty_string,
    sanitize,
    validate,
    validate_non_empty_string,
    validate_selector,
    validate_user_id,
)

if TYPE_CHECKING:
    from ..storage.base import PrivilegeStorage


def privilege_matches(granted: Privilege, requested: Privilege) -> bool:
    """A granted privilege satisfies a request when name, component and group all match.

    Possible grants and what they cover::

        { name: *, component: *, group: * }  all privileges everywhere
        { name,    component: *, group: * }  one privilege everywhere
        { name: *, component,    group: * }  all privileges on one component in each group
        { name: *, component: *, group    }  all privileges within one group
        { name,    component,    group: * }  one privilege on one component in each group
        { name,    component: *, group    }  one privilege on each component in one group
        { name: *, component,    group    }  all privileges on one component in one group
        { name,    component,    group    }  exactly one privilege
    """
    return all(
        granted.field(field).matches(requested.field(field))
        for field in MATCHED_FIELDS
    )


def _require_non_empty(field: str, values: Sequence[Any]) -> None:
    if isinstance(values, str):
        raise InvalidTypeError(f'Expected "{field}" to be a sequence of values, str given', {"field": field})
    if len(values) == 0:
        raise EmptyCollectionError(field)


class PrivilegeEngine:
    """ACL engine based on user privileges.

    Privileges are granted to users; permissions are demanded by the code
    performing a check. A wildcard on a granted field widens the grant, a
    wildcard on the requested side is compared literally.
    """

    def __init__(self, storage: "PrivilegeStorage", metrics: Optional[MetricsCollector] = None):
        self.storage = storage
        self.metrics = metrics
        self.logger = get_logger("privileges.engine")

    # -- Checks -----------------------------------------------------------------

    def has_privilege(self, user_id: Any, requested: PrivilegeInput) -> bool:
        """Low level check of a single requested privilege.

        Returns False without raising when ``user_id`` is not a non-empty
        string. Role is validated but never compared.
        """
        if not is_non_empty_string(user_id):
            return False

        validate(requested)
        privilege = sanitize(requested)

        start_time = time.time()
        user_privileges = self.storage.get_all_user_privileges(user_id)
        allowed = any(privilege_matches(granted, privilege) for granted in user_privileges)

        if self.metrics is not None:
            self.metrics.record_privilege_check(allowed, time.time() - start_time)
        self.logger.debug(
            "Privilege check",
            user_id=user_id,
            requested=privilege.to_dict(),
            granted_count=len(user_privileges),
            allowed=allowed
        )
        return allowed

    def has_any_privilege(self, user_id: Any, requested: Sequence[PrivilegeInput]) -> bool:
        """True if at least one requested privilege is held; stops at the first match."""
        for privilege in requested:
            if self.has_privilege(user_id, privilege):
                return True
        return False

    def has(self, user_id: Any, name: str, component: Optional[str] = None,
            group: Optional[str] = None) -> bool:
        """Check a privilege given by its fields."""
        requested = {"name": name, "component": component, "group": group}
        validate(requested)
        return self.has_privilege(user_id, requested)

    def can(self, user_id: Any, name: str, component: Optional[str] = None,
            group: Optional[str] = None) -> bool:
        """Alias of ``has``."""
        return self.has(user_id, name, component, group)

    def has_any(self, user_id: Any, names: Sequence[str], component: Optional[str] = None,
                group: Optional[str] = None) -> bool:
        """True if the user holds any of ``names``; stops at the first match."""
        _require_non_empty("names", names)
        for name in names:
            if self.has(user_id, name, component, group):
                return True
        return False

    def can_any(self, user_id: Any, names: Sequence[str], component: Optional[str] = None,
                group: Optional[str] = None) -> bool:
        """Alias of ``has_any``."""
        return self.has_any(user_id, names, component, group)

    # -- Grants -----------------------------------------------------------------

    def grant(self, user_id: str, name: str, component: Optional[str] = None,
              group: Optional[str] = None, role: Optional[str] = None) -> str:
        """Grant a single privilege and return the storage identifier.

        ``grant("chris", "read", "userList", "ajax")`` stores
        ``{name: read, component: userList, group: ajax, role: None}``.
        """
        validate_user_id(user_id)
        requested = {"name": name, "component": component, "group": group, "role": role}
        validate(requested)

        privilege_id = self.storage.set_user_privilege(user_id, sanitize(requested))

        if self.metrics is not None:
            self.metrics.record_grant()
        self.logger.info("Privilege granted", user_id=user_id, privilege_id=privilege_id, **requested)
        return privilege_id

    def grant_many(self, user_id: str, names: Sequence[str], component: Optional[str] = None,
                   group: Optional[str] = None, role: Optional[str] = None) -> List[str]:
        """Grant several names with the same scope; ids follow input order."""
        validate_user_id(user_id)
        _require_non_empty("names", names)
        return [self.grant(user_id, name, component, group, role) for name in names]

    def revoke(self, user_id: str, privilege_id: str) -> None:
        """Revoke one grant by identifier."""
        validate_user_id(user_id)
        validate_non_empty_string("privilege_id", privilege_id)

        self.storage.remove_user_privilege(user_id, privilege_id)

        if self.metrics is not None:
            self.metrics.record_revoke()
        self.logger.info("Privilege revoked", user_id=user_id, privilege_id=privilege_id)

    def revoke_many(self, user_id: str, privilege_ids: Sequence[str]) -> None:
        """Revoke several grants by identifier, in input order."""
        validate_user_id(user_id)
        _require_non_empty("privilege_ids", privilege_ids)
        for privilege_id in privilege_ids:
            self.revoke(user_id, privilege_id)

    def grants(self, user_id: str) -> List[GrantedPrivilege]:
        """All grants held by a user, with their identifiers, in grant order."""
        validate_user_id(user_id)
        return self.storage.get_user_grants(user_id)

    # -- Registry ---------------------------------------------------------------

    def register(self, privilege: PrivilegeInput) -> str:
        """Register a privilege without attaching it to a user.

        Lets e.g. a UI offer a selection of known privileges.
        """
        validate(privilege)
        return self.storage.register(sanitize(privilege))

    def exists(self, selector: dict) -> bool:
        """Exact match on the given fields; a stored wildcard is not expanded.

        After ``register({"name": "test", "component": "matches", "group": "*"})``,
        ``exists({"name": "test", "component": "matches", "group": "ajax"})`` is False.
        """
        validate_selector(selector)
        return self.storage.exists(selector)

    def pluck(self, property: str, filter: Optional[dict] = None) -> List[Any]:
        """Unique values of one field over the registered privileges matching ``filter``.

        ``pluck("group", {"component": "A"})`` lists every group holding a
        privilege on component A, in first-seen order.
        """
        if property not in PLUCKABLE_FIELDS:
            raise ValidationError(
                f'Expected "property" to be one of {", ".join(PLUCKABLE_FIELDS)}, {property!r} given',
                {"field": "property"}
            )
        selector = filter or {}
        validate_selector(selector)

        values: List[Any] = []
        for privilege in self.storage.filter(selector):
            value = privilege.field(property).to_raw()
            if value not in values:
                values.append(value)
        return values

    # -- Roles ------------------------------------------------------------------

    def register_role(self, name: str, group: Optional[str] = None,
                      privilege: Optional[PrivilegeInput] = None) -> str:
        """Register a role globally or for a group, with an optional privilege template.

        ``register_role("player", "ajax-selection", {"name": "read", "component": "matches"})``
        describes ``{name: read, component: matches, group: ajax-selection, role: player}``
        for users holding the role. Expanding roles into grants is left to callers.
        """
        validate_non_empty_string("name", name)
        validate_non_empty_string("group", group, optional=True)
        template = None
        if privilege is not None:
            validate(privilege)
            template = sanitize(privilege)

        role_id = self.storage.register_role(name, group, template)
        self.logger.info("Role registered", role=name, group=group, role_id=role_id)
        return role_id

    def register_role_many(self, name: str, group: Optional[str],
                           privileges: Sequence[PrivilegeInput]) -> List[str]:
        """Register one role per privilege template; ids follow input order."""
        _require_non_empty("privileges", privileges)
        return [self.register_role(name, group, privilege) for privilege in privileges]

    def assign_role(self, user_id: str, role: str, group: Optional[str] = None) -> str:
        """Assign a role to a user, globally or within a group."""
        validate_non_empty_string("user_id", user_id)
        validate_non_empty_string("role", role)
        validate_non_empty_string("group", group, optional=True)

        assignment_id = self.storage.assign_role(user_id, role, group)
        self.logger.info("Role assigned", user_id=user_id, role=role, group=group)
        return assignment_id

    def assign_roles(self, user_id: str, roles: Sequence[str], group: Optional[str] = None) -> List[str]:
        """Assign several roles within the same scope; ids follow input order."""
        _require_non_empty("roles", roles)
        return [self.assign_role(user_id, role, group) for role in roles]

    def has_role(self, user_id: str, role: str, group: Optional[str] = None) -> bool:
        """Whether the user was assigned ``role`` in exactly this scope.

        A role assigned within a group does not make the user a global
        holder of that role.
        """
        validate_non_empty_string("user_id", user_id)
        validate_non_empty_string("role", role)
        validate_non_empty_string("group", group, optional=True)

        return bool(self.storage.get_role(user_id, role, group))
