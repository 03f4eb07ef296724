"""
Storage package for the Privileges service.

Defines the storage port the engine depends on and its adapters:

- base: ``PrivilegeStorage`` and ``GroupStorage`` protocols.
- memory: Lock-guarded in-memory adapter.
- redis_store: Redis-backed adapter.

``create_storage`` picks an adapter from configuration.
"""

from shared.config import BaseConfig

from .base import GroupStorage, PrivilegeStorage
from .memory import InMemoryStorage
from .redis_store import RedisStorage


def create_storage(config: BaseConfig):
    """Build the storage adapter named by ``config.storage_backend``."""
    if config.storage_backend == "redis":
        return RedisStorage(config.redis_url, key_prefix=config.redis_key_prefix)
    return InMemoryStorage()


__all__ = [
    "GroupStorage",
    "PrivilegeStorage",
    "InMemoryStorage",
    "RedisStorage",
    "create_storage",
]
