"""Bucket naming for the access-control data model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple, Union

from pydantic import BaseModel, ConfigDict

ALLOWS_PREFIX = "allows_"


class BucketNames(BaseModel):
    """Names of the fixed buckets used by the engine."""

    model_config = ConfigDict(frozen=True)

    meta: str = "meta"
    parents: str = "parents"
    permissions: str = "permissions"
    resources: str = "resources"
    roles: str = "roles"
    users: str = "users"


@dataclass(frozen=True)
class AllowsBucket:
    """Permission bucket of a single resource, keyed by role.

    Kept structured so stores can build composite keys instead of parsing
    ``allows_<resource>`` strings back apart.
    """

    resource: str

    def __str__(self) -> str:
        return f"{ALLOWS_PREFIX}{self.resource}"


Bucket = Union[str, AllowsBucket]


def allows_bucket(resource: str) -> AllowsBucket:
    """Return the permission bucket for ``resource``."""
    return AllowsBucket(resource)


def resource_from_bucket(bucket: Bucket) -> str:
    """Inverse of :func:`allows_bucket`."""
    if isinstance(bucket, AllowsBucket):
        return bucket.resource
    if bucket.startswith(ALLOWS_PREFIX):
        return bucket[len(ALLOWS_PREFIX):]
    return bucket


def split_bucket(bucket: Bucket) -> Tuple[str, str]:
    """Return the ``(kind, name)`` pair stores use as a composite key prefix."""
    if isinstance(bucket, AllowsBucket):
        return "allows", bucket.resource
    return "bucket", bucket
