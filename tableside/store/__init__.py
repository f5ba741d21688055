"""
Entity Store Factory

Provides a single entry point for obtaining the entity store.

Usage:
    from tableside.store import get_entity_store

    # Returns InMemoryEntityStore or SqlEntityStore based on ENV_MODE
    store = get_entity_store()
    table = await store.get_table("t1")

Environment Switching:
    - ENV_MODE=development → InMemoryEntityStore (nothing persisted)
    - ENV_MODE=staging → SqlEntityStore (DATABASE_URL)
    - ENV_MODE=production → SqlEntityStore (DATABASE_URL)
"""

import logging
from functools import lru_cache

from tableside.core.config import get_settings
from tableside.store.base import BaseEntityStore
from tableside.store.memory import InMemoryEntityStore
from tableside.store.sql import SqlEntityStore

logger = logging.getLogger(__name__)


@lru_cache()
def get_entity_store() -> BaseEntityStore:
    """
    Get the configured entity store instance.

    The instance is cached so every request shares the same store (and,
    for the in-memory store, the same data).

    Returns:
        BaseEntityStore: Configured entity store
    """
    settings = get_settings()

    if settings.is_development:
        logger.info("Entity Store: Using InMemoryEntityStore (development mode)")
        return InMemoryEntityStore()

    from tableside.database import engine

    logger.info(
        f"Entity Store: Using SqlEntityStore "
        f"({settings.env_mode.value} mode)"
    )
    return SqlEntityStore(engine)


def reset_entity_store() -> None:
    """
    Clear the cached entity store instance.

    The next call to get_entity_store() will create a new instance.
    """
    get_entity_store.cache_clear()
    logger.debug("Entity store cache cleared")


__all__ = [
    "get_entity_store",
    "reset_entity_store",
    "BaseEntityStore",
    "InMemoryEntityStore",
    "SqlEntityStore",
]
