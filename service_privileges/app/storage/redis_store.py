"""
Redis storage for privileges.

Records are JSON-encoded into Redis hashes keyed by identifiers drawn from
a single ``INCR`` sequence, so listings sorted by id follow insertion
order. Duplicate detection goes through ``HSETNX`` on a content index,
which keeps grants and registrations idempotent under concurrent writers.

Key layout (``<prefix>`` defaults to ``privileges``)::

    <prefix>:seq                      id sequence
    <prefix>:registry                 id -> privilege
    <prefix>:registry:index           privilege -> id
    <prefix>:grants:<user_id>         id -> privilege
    <prefix>:grants:<user_id>:index   privilege -> id
    <prefix>:roles                    id -> role record
    <prefix>:roles:index              role record -> id
    <prefix>:assignments              id -> role assignment
    <prefix>:assignments:index        role assignment -> id
    <prefix>:groups                   id -> group props
"""

import json
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

import redis

from shared.errors import NotFoundError, StorageError
from shared.logging import get_logger
from ..privileges.models import GrantedPrivilege, Privilege, RoleAssignment
from ..privileges.validation import sanitize, validate_non_empty_string


def _encode(data: Mapping[str, Any]) -> str:
    return json.dumps(dict(data), sort_keys=True)


class RedisStorage:
    """Redis implementation of the privilege and group storage ports."""

    def __init__(self, redis_url: str = "redis://localhost:6379/0", key_prefix: str = "privileges",
                 client: Optional[redis.Redis] = None):
        self.redis_url = redis_url
        self.key_prefix = key_prefix
        self.logger = get_logger("privileges.storage.redis")
        self.redis = client if client is not None else redis.Redis.from_url(
            redis_url,
            encoding="utf-8",
            decode_responses=True,
            socket_connect_timeout=5,
            socket_timeout=5,
            retry_on_timeout=True,
            health_check_interval=30
        )

    def _key(self, *parts: str) -> str:
        return ":".join((self.key_prefix,) + parts)

    @contextmanager
    def _errors(self, operation: str) -> Iterator[None]:
        try:
            yield
        except redis.RedisError as e:
            self.logger.error("Redis operation failed", operation=operation, error=str(e))
            raise StorageError(f"Redis {operation} failed", {"error": str(e)}) from e

    def health_check(self) -> bool:
        with self._errors("ping"):
            return bool(self.redis.ping())

    # -- Generic helpers --------------------------------------------------------

    def _insert_unique(self, hash_key: str, record: str) -> str:
        """Store ``record`` once; return the id it is stored under.

        The content index is claimed before the record is written. An index
        entry whose record is missing (a write interrupted between the two
        commands) is repaired by writing the record under the indexed id.
        """
        index_key = f"{hash_key}:index"
        candidate = str(self.redis.incr(self._key("seq")))
        if self.redis.hsetnx(index_key, record, candidate):
            self.redis.hset(hash_key, candidate, record)
            return candidate

        existing = self.redis.hget(index_key, record)
        if existing is None:
            # Index entry removed concurrently
            return self._insert_unique(hash_key, record)
        if self.redis.hsetnx(hash_key, existing, record):
            self.logger.warning("Repaired index entry without record", key=hash_key, record_id=existing)
        return existing

    def _records(self, hash_key: str) -> List[Tuple[str, Dict[str, Any]]]:
        """All records of a hash ordered by id."""
        items = self.redis.hgetall(hash_key)
        return [(record_id, json.loads(items[record_id])) for record_id in sorted(items, key=int)]

    # -- Registered privileges --------------------------------------------------

    def register(self, privilege: Privilege) -> str:
        with self._errors("register"):
            return self._insert_unique(self._key("registry"), _encode(privilege.to_dict()))

    def exists(self, selector: Mapping[str, Any]) -> bool:
        return len(self.filter(selector)) > 0

    def filter(self, selector: Mapping[str, Any]) -> List[Privilege]:
        with self._errors("filter"):
            records = self._records(self._key("registry"))
        privileges = (sanitize(data) for _, data in records)
        return [p for p in privileges if p.matches_selector(selector)]

    # -- User grants ------------------------------------------------------------

    def get_all_user_privileges(self, user_id: str) -> List[Privilege]:
        return [grant.privilege for grant in self.get_user_grants(user_id)]

    def get_user_grants(self, user_id: str) -> List[GrantedPrivilege]:
        validate_non_empty_string("user_id", user_id)
        with self._errors("get_user_grants"):
            records = self._records(self._key("grants", user_id))
        return [
            GrantedPrivilege(privilege_id=record_id, user_id=user_id, privilege=sanitize(data))
            for record_id, data in records
        ]

    def set_user_privilege(self, user_id: str, privilege: Privilege) -> str:
        validate_non_empty_string("user_id", user_id)
        with self._errors("set_user_privilege"):
            return self._insert_unique(self._key("grants", user_id), _encode(privilege.to_dict()))

    def remove_user_privilege(self, user_id: str, privilege_id: str) -> None:
        validate_non_empty_string("user_id", user_id)
        grants_key = self._key("grants", user_id)
        with self._errors("remove_user_privilege"):
            record = self.redis.hget(grants_key, privilege_id)
            if record is None:
                self.logger.debug("Grant not found, nothing removed", user_id=user_id, privilege_id=privilege_id)
                return
            self.redis.hdel(grants_key, privilege_id)
            self.redis.hdel(f"{grants_key}:index", record)

    # -- Roles ------------------------------------------------------------------

    def register_role(self, name: str, group: Optional[str], privilege: Optional[Privilege]) -> str:
        record = _encode({
            "name": name,
            "group": group,
            "privilege": privilege.to_dict() if privilege is not None else None
        })
        with self._errors("register_role"):
            return self._insert_unique(self._key("roles"), record)

    def assign_role(self, user_id: str, role: str, group: Optional[str]) -> str:
        record = _encode({"user_id": user_id, "role": role, "group": group})
        with self._errors("assign_role"):
            return self._insert_unique(self._key("assignments"), record)

    def get_role(self, user_id: str, role: str, group: Optional[str]) -> Optional[RoleAssignment]:
        record = _encode({"user_id": user_id, "role": role, "group": group})
        with self._errors("get_role"):
            assignment_id = self.redis.hget(self._key("assignments", "index"), record)
        if assignment_id is None:
            return None
        return RoleAssignment(assignment_id=assignment_id, user_id=user_id, role=role, group=group)

    # -- Groups -----------------------------------------------------------------

    def register_group(self, props: Mapping[str, Any]) -> str:
        with self._errors("register_group"):
            group_id = str(self.redis.incr(self._key("seq")))
            self.redis.hset(self._key("groups"), group_id, _encode({**props, "parent_id": props.get("parent_id")}))
            return group_id

    def fetch_group(self, group_id: str) -> Optional[Dict[str, Any]]:
        with self._errors("fetch_group"):
            record = self.redis.hget(self._key("groups"), group_id)
        return json.loads(record) if record is not None else None

    def set_group_parent(self, subgroup_id: str, parent_id: str) -> None:
        group = self.fetch_group(subgroup_id)
        if group is None:
            raise NotFoundError(f"Group {subgroup_id!r} not found", {"group_id": subgroup_id})
        group["parent_id"] = parent_id
        with self._errors("set_group_parent"):
            self.redis.hset(self._key("groups"), subgroup_id, _encode(group))

    def get_subgroups(self, group_id: str) -> List[str]:
        with self._errors("get_subgroups"):
            records = self._records(self._key("groups"))
        return [record_id for record_id, data in records if data.get("parent_id") == group_id]
