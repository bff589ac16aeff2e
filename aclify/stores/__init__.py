"""Store backends and factory."""

from __future__ import annotations

import logging
import os
from typing import Optional

from ..config import AclifyConfig, load_config
from .base import BaseStore, BatchUnionStore
from .memory import MemoryStore
from .sqlite import SQLiteStore

try:  # pragma: no cover - optional dependency
    from .postgres import PostgresStore
except Exception:  # pragma: no cover - optional dependency
    PostgresStore = None  # type: ignore

logger = logging.getLogger(__name__)

_store_instance: BaseStore | None = None


def _backend_from_url(database_url: str) -> str:
    if database_url.startswith("sqlite://"):
        return "sqlite"
    if database_url.startswith("postgres://") or database_url.startswith(
        "postgresql://"
    ):
        return "postgres"
    raise ValueError(f"Unsupported database backend: {database_url}")


def get_store(
    backend: Optional[str] = None, config: Optional[AclifyConfig] = None
) -> BaseStore:
    """Factory function to obtain the configured store.

    The backend is taken from ``backend``, the ``ACLIFY_STORE`` environment
    variable, or loaded configuration. A configured ``database_url`` selects
    the SQLite or PostgreSQL store when the backend is left at ``memory``
    and neither ``backend`` nor ``ACLIFY_STORE`` names one.
    Calls without arguments share one cached instance.
    """

    global _store_instance
    if _store_instance is not None and backend is None and config is None:
        return _store_instance

    config = config or load_config()
    store_conf = config.store
    database_url = store_conf.database_url
    chosen = backend or os.getenv("ACLIFY_STORE")
    backend = (chosen or store_conf.backend).lower()

    # a database URL only implies the backend when nothing picked one explicitly
    if not chosen and backend == "memory" and database_url:
        backend = _backend_from_url(database_url)

    if backend == "memory":
        store: BaseStore = MemoryStore()
    elif backend == "sqlite":
        if not database_url:
            raise ValueError("sqlite backend requires a database_url")
        path = database_url.replace("sqlite://", "", 1)
        store = SQLiteStore(path, prefix=config.prefix)
    elif backend == "postgres":
        if PostgresStore is None:
            raise RuntimeError("Postgres support not available")
        if not database_url:
            raise ValueError("postgres backend requires a database_url")
        store = PostgresStore(database_url, prefix=config.prefix)
    elif backend == "redis":
        from .redis import RedisStore

        redis_conf = store_conf.redis
        store = RedisStore(
            host=redis_conf.host,
            port=redis_conf.port,
            db=redis_conf.db,
            password=redis_conf.password,
            prefix=config.prefix,
        )
    else:
        raise ValueError(f"Unsupported store backend: {backend}")

    logger.info(f"Using {type(store).__name__} for access-control state")
    _store_instance = store
    return store


__all__ = [
    "BaseStore",
    "BatchUnionStore",
    "MemoryStore",
    "SQLiteStore",
    "PostgresStore",
    "get_store",
]
