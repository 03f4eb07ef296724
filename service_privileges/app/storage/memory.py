"""
In-memory storage for privileges.

Useful for testing the privilege engine and for single-process
deployments. All state lives in ordered Python containers guarded by a
re-entrant lock.
"""

import threading
import uuid
from typing import Any, Dict, List, Mapping, Optional

from shared.errors import NotFoundError
from shared.logging import get_logger
from ..privileges.models import GrantedPrivilege, Privilege, RoleAssignment, RoleRecord
from ..privileges.validation import validate_non_empty_string


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryStorage:
    """In-memory implementation of the privilege and group storage ports."""

    def __init__(self):
        self.logger = get_logger("privileges.storage.memory")
        self._lock = threading.RLock()
        self.privileges: Dict[str, Privilege] = {}
        self.user_privileges: Dict[str, List[GrantedPrivilege]] = {}
        self.roles: List[RoleRecord] = []
        self.role_assignments: List[RoleAssignment] = []
        self.groups: Dict[str, Dict[str, Any]] = {}

    # -- Registered privileges ------------------------------------------------

    def register(self, privilege: Privilege) -> str:
        with self._lock:
            for privilege_id, stored in self.privileges.items():
                if stored == privilege:
                    return privilege_id
            privilege_id = _new_id()
            self.privileges[privilege_id] = privilege
            return privilege_id

    def get(self, selector: Mapping[str, Any]) -> Optional[Privilege]:
        """First registered privilege matching the selector exactly."""
        with self._lock:
            return next(
                (p for p in self.privileges.values() if p.matches_selector(selector)),
                None
            )

    def exists(self, selector: Mapping[str, Any]) -> bool:
        return self.get(selector) is not None

    def filter(self, selector: Mapping[str, Any]) -> List[Privilege]:
        with self._lock:
            return [p for p in self.privileges.values() if p.matches_selector(selector)]

    # -- User grants ------------------------------------------------------------

    def get_all_user_privileges(self, user_id: str) -> List[Privilege]:
        return [grant.privilege for grant in self.get_user_grants(user_id)]

    def get_user_grants(self, user_id: str) -> List[GrantedPrivilege]:
        validate_non_empty_string("user_id", user_id)
        with self._lock:
            return list(self.user_privileges.get(user_id, []))

    def get_user_privilege(self, user_id: str, privilege: Privilege) -> Optional[GrantedPrivilege]:
        """The user's grant with exactly these values, if any."""
        validate_non_empty_string("user_id", user_id)
        with self._lock:
            return next(
                (g for g in self.user_privileges.get(user_id, []) if g.privilege == privilege),
                None
            )

    def user_has_privilege(self, user_id: str, privilege: Privilege) -> bool:
        return self.get_user_privilege(user_id, privilege) is not None

    def set_user_privilege(self, user_id: str, privilege: Privilege) -> str:
        with self._lock:
            existing = self.get_user_privilege(user_id, privilege)
            if existing is not None:
                return existing.privilege_id

            grant = GrantedPrivilege(privilege_id=_new_id(), user_id=user_id, privilege=privilege)
            self.user_privileges.setdefault(user_id, []).append(grant)
            return grant.privilege_id

    def remove_user_privilege(self, user_id: str, privilege_id: str) -> None:
        validate_non_empty_string("user_id", user_id)
        with self._lock:
            grants = self.user_privileges.get(user_id)
            if not grants:
                return
            remaining = [g for g in grants if g.privilege_id != privilege_id]
            if len(remaining) == len(grants):
                self.logger.debug("Grant not found, nothing removed", user_id=user_id, privilege_id=privilege_id)
            self.user_privileges[user_id] = remaining

    # -- Roles ------------------------------------------------------------------

    def register_role(self, name: str, group: Optional[str], privilege: Optional[Privilege]) -> str:
        with self._lock:
            for record in self.roles:
                if (record.name, record.group, record.privilege) == (name, group, privilege):
                    return record.role_id
            record = RoleRecord(role_id=_new_id(), name=name, group=group, privilege=privilege)
            self.roles.append(record)
            return record.role_id

    def assign_role(self, user_id: str, role: str, group: Optional[str]) -> str:
        with self._lock:
            existing = self.get_role(user_id, role, group)
            if existing is not None:
                return existing.assignment_id
            assignment = RoleAssignment(assignment_id=_new_id(), user_id=user_id, role=role, group=group)
            self.role_assignments.append(assignment)
            return assignment.assignment_id

    def get_role(self, user_id: str, role: str, group: Optional[str]) -> Optional[RoleAssignment]:
        with self._lock:
            return next(
                (
                    a for a in self.role_assignments
                    if (a.user_id, a.role, a.group) == (user_id, role, group)
                ),
                None
            )

    # -- Groups -----------------------------------------------------------------

    def register_group(self, props: Mapping[str, Any]) -> str:
        with self._lock:
            group_id = _new_id()
            self.groups[group_id] = {**props, "parent_id": props.get("parent_id")}
            return group_id

    def fetch_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            group = self.groups.get(group_id)
            return dict(group) if group is not None else None

    def set_group_parent(self, subgroup_id: str, parent_id: str) -> None:
        with self._lock:
            if subgroup_id not in self.groups:
                raise NotFoundError(f"Group {subgroup_id!r} not found", {"group_id": subgroup_id})
            self.groups[subgroup_id]["parent_id"] = parent_id

    def get_subgroups(self, group_id: str) -> List[str]:
        with self._lock:
            return [gid for gid, props in self.groups.items() if props.get("parent_id") == group_id]
