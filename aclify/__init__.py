"""aclify: role-based access control over pluggable async stores."""

from .acl import WILDCARD, Acl
from .buckets import AllowsBucket, BucketNames, allows_bucket, resource_from_bucket
from .config import AclifyConfig, load_config
from .errors import AclError, CleanupError, InvalidArgumentError
from .models import AllowEntry, RoleGrant
from .stores import BaseStore, BatchUnionStore, MemoryStore, get_store

__version__ = "0.1.0"
__all__ = [
    "Acl",
    "WILDCARD",
    "AllowsBucket",
    "BucketNames",
    "allows_bucket",
    "resource_from_bucket",
    "AclifyConfig",
    "load_config",
    "AclError",
    "CleanupError",
    "InvalidArgumentError",
    "AllowEntry",
    "RoleGrant",
    "BaseStore",
    "BatchUnionStore",
    "MemoryStore",
    "get_store",
]
