"""
Group hierarchy helpers.

A small collaborator on top of the group storage port. A group is any
mapping of properties plus a ``parent_id`` so it can sit in a hierarchy,
which keeps it simple to hook up to an existing group system.

The hierarchy is bookkeeping only: the matching engine never consults it
and grants are not propagated to subgroups.
"""

from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

from shared.errors import GroupExistsError, NotFoundError
from shared.logging import get_logger
from .privileges.validation import validate_non_empty_string
from .storage.base import GroupStorage


class Group:
    """A single group bound to a storage adapter.

    ``Group(storage).register({"name": "ajax", "city": "Amsterdam"})``
    persists the props and binds the instance to the new id.
    """

    def __init__(self, storage: GroupStorage, group_id: Optional[str] = None):
        self.storage = storage
        self.id = group_id
        self.logger = get_logger("privileges.groups")

    def register(self, props: Mapping[str, Any]) -> str:
        """Persist ``props`` as a new group; fails if the bound id already exists."""
        if self.id and self.storage.fetch_group(self.id) is not None:
            raise GroupExistsError(self.id)

        self.id = self.storage.register_group(props)
        self.logger.info("Group registered", group_id=self.id)
        return self.id

    def details(self) -> Dict[str, Any]:
        group = self.storage.fetch_group(self._bound_id())
        if group is None:
            raise NotFoundError(f"Group {self.id!r} not found", {"group_id": self.id})
        return group

    def make_parent_of(self, subgroup_ids: Union[str, Sequence[str]]) -> None:
        """Put one or more groups under this group (opposite of ``make_child_of``)."""
        parent_id = self._bound_id()
        if isinstance(subgroup_ids, str):
            subgroup_ids = [subgroup_ids]
        for subgroup_id in subgroup_ids:
            self.storage.set_group_parent(subgroup_id, parent_id)

    def make_child_of(self, group_id: str) -> None:
        """Make this group a subgroup of ``group_id``."""
        validate_non_empty_string("group_id", group_id)
        self.storage.set_group_parent(self._bound_id(), group_id)

    def subgroups(self) -> List[str]:
        return self.storage.get_subgroups(self._bound_id())

    def _bound_id(self) -> str:
        if not self.id:
            raise NotFoundError("Group is not registered")
        return self.id
