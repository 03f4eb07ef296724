"""
Storage port consumed by the privilege engine.

Adapters own all persisted state and are solely responsible for the
atomicity of writes and reads. The engine performs no locking, retries or
transactions on top of them.
"""

from typing import Any, Dict, List, Mapping, Optional, Protocol, runtime_checkable

from ..privileges.models import GrantedPrivilege, Privilege, RoleAssignment


@runtime_checkable
class PrivilegeStorage(Protocol):
    """Persistence contract for privileges, grants and roles."""

    def register(self, privilege: Privilege) -> str:
        """Persist a privilege without a user. Idempotent on exact duplicates."""
        ...

    def exists(self, selector: Mapping[str, Any]) -> bool:
        """Exact match on the given keys; wildcards are literals."""
        ...

    def filter(self, selector: Mapping[str, Any]) -> List[Privilege]:
        """Registered privileges matching the selector exactly, in insertion order."""
        ...

    def get_all_user_privileges(self, user_id: str) -> List[Privilege]:
        """All privileges granted to a user; empty when none."""
        ...

    def get_user_grants(self, user_id: str) -> List[GrantedPrivilege]:
        """All grants of a user together with their identifiers."""
        ...

    def set_user_privilege(self, user_id: str, privilege: Privilege) -> str:
        """Grant a privilege. Re-granting identical values returns the existing id."""
        ...

    def remove_user_privilege(self, user_id: str, privilege_id: str) -> None:
        """Remove a grant; removing an unknown id is a no-op."""
        ...

    def register_role(self, name: str, group: Optional[str], privilege: Optional[Privilege]) -> str:
        ...

    def assign_role(self, user_id: str, role: str, group: Optional[str]) -> str:
        ...

    def get_role(self, user_id: str, role: str, group: Optional[str]) -> Optional[RoleAssignment]:
        ...


@runtime_checkable
class GroupStorage(Protocol):
    """Persistence contract for the optional group hierarchy."""

    def register_group(self, props: Mapping[str, Any]) -> str:
        ...

    def fetch_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        ...

    def set_group_parent(self, subgroup_id: str, parent_id: str) -> None:
        ...

    def get_subgroups(self, group_id: str) -> List[str]:
        ...
