from __future__ import annotations

import os
from typing import Literal, Optional

import yaml
from pydantic import BaseModel

from .buckets import BucketNames


class RedisConfig(BaseModel):
    """Connection settings for the Redis store."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: Optional[str] = None


class StoreConfig(BaseModel):
    """Store backend settings."""

    backend: Literal["memory", "redis", "sqlite", "postgres"] = "memory"
    database_url: Optional[str] = None
    redis: RedisConfig = RedisConfig()


class AclifyConfig(BaseModel):
    """Top-level configuration model."""

    prefix: str = "acl"
    buckets: BucketNames = BucketNames()
    store: StoreConfig = StoreConfig()


def load_config(path: Optional[str] = None) -> AclifyConfig:
    """Load configuration from YAML file.

    Args:
        path: Optional path to config file. Falls back to ACLIFY_CONFIG env
            variable or 'aclify.yaml' in the current directory.
    """

    config_path = path or os.getenv("ACLIFY_CONFIG", "aclify.yaml")
    if os.path.exists(config_path):
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
        config = AclifyConfig(**data)
    else:
        config = AclifyConfig()

    env_db_url = os.getenv("ACLIFY_DATABASE_URL")
    if env_db_url:
        config.store.database_url = env_db_url
    return config
