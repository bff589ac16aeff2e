"""Grant records accepted by the batch form of ``Acl.allow``."""

from __future__ import annotations

from typing import Any, List

from pydantic import BaseModel, Field, field_validator

from .errors import InvalidArgumentError
from .utils.identifiers import make_list


def _identifiers(value: Any, name: str) -> List[str]:
    try:
        return make_list(value, name)
    except InvalidArgumentError as e:
        # pydantic wraps ValueError into a ValidationError
        raise ValueError(str(e)) from e


class AllowEntry(BaseModel):
    """Permissions granted over a set of resources."""

    resources: List[str]
    permissions: List[str]

    @field_validator("resources", mode="before")
    @classmethod
    def _normalize_resources(cls, value: Any) -> List[str]:
        return _identifiers(value, "resources")

    @field_validator("permissions", mode="before")
    @classmethod
    def _normalize_permissions(cls, value: Any) -> List[str]:
        return _identifiers(value, "permissions")


class RoleGrant(BaseModel):
    """One record of ``{roles, allows: [{resources, permissions}, ...]}``."""

    roles: List[str]
    allows: List[AllowEntry] = Field(default_factory=list)

    @field_validator("roles", mode="before")
    @classmethod
    def _normalize_roles(cls, value: Any) -> List[str]:
        return _identifiers(value, "roles")

    def demux(self) -> List[tuple[List[str], List[str], List[str]]]:
        """Expand into ``(roles, resources, permissions)`` triples, in order."""
        return [(self.roles, entry.resources, entry.permissions) for entry in self.allows]
