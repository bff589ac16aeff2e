"""Role-based access-control engine.

Users, roles, resources and permissions are kept in buckets of a
:class:`~aclify.stores.base.BaseStore`:

* ``users[user]`` -> roles held by the user, ``roles[role]`` -> its users
* ``parents[role]`` -> parent roles
* ``resources[role]`` -> resources the role has some permission on
* ``AllowsBucket(resource)[role]`` -> permissions (or ``*``)
* ``meta["roles"]`` / ``meta["users"]`` -> every role / user introduced

Forward and reverse entries are written in the same transaction. Reads do
not open transactions.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import ValidationError

from .buckets import BucketNames, allows_bucket, resource_from_bucket
from .errors import CleanupError, InvalidArgumentError
from .models import RoleGrant
from .stores.base import BaseStore, BatchUnionStore
from .utils.identifiers import Identifier, Identifiers, make_id, make_list

logger = logging.getLogger(__name__)

WILDCARD = "*"

GrantRecords = Sequence[Union[RoleGrant, Mapping[str, Any]]]


def _required_permissions(permissions: Identifiers) -> List[str]:
    permission_list = make_list(permissions, "permissions")
    if not permission_list:
        raise InvalidArgumentError("permissions must not be empty")
    return permission_list


class Acl:
    """Access-control engine over a pluggable store.

    Usage:
        acl = Acl(MemoryStore())
        await acl.allow("member", "blogs", ["view", "edit"])
        await acl.add_user_roles("joed", "member")
        assert await acl.is_allowed("joed", "blogs", "view")

    Every operation accepts a single identifier or a collection of them.
    Integer identifiers are stored as strings.
    """

    def __init__(
        self,
        store: BaseStore,
        buckets: Optional[BucketNames] = None,
        optimize: bool = True,
    ) -> None:
        self.store = store
        self.buckets = buckets or BucketNames()
        # batched resolution is only used when the store can union many buckets at once
        self._batch_store: Optional[BatchUnionStore] = (
            store if optimize and isinstance(store, BatchUnionStore) else None
        )

    @property
    def optimized(self) -> bool:
        """``True`` when permission lookups use the batched union path."""
        return self._batch_store is not None

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Any]:
        # writes are only submitted when the block completes
        transaction = self.store.begin()
        yield transaction
        await self.store.end(transaction)

    # ------------------------------------------------------------------
    # Grants
    async def allow(
        self,
        roles: Union[Identifiers, GrantRecords],
        resources: Optional[Identifiers] = None,
        permissions: Optional[Identifiers] = None,
    ) -> None:
        """Grant ``permissions`` on every resource to every role.

        Also accepts a single list of grant records
        ``[{"roles": ..., "allows": [{"resources": ..., "permissions": ...}]}]``
        which is applied as one ``allow`` call per entry, in order.
        """
        if resources is None and permissions is None:
            await self._allow_grants(roles)
            return
        if resources is None or permissions is None:
            raise InvalidArgumentError("allow requires roles, resources and permissions")

        role_list = make_list(roles, "roles")
        resource_list = make_list(resources, "resources")
        permission_list = make_list(permissions, "permissions")

        async with self._transaction() as tx:
            self.store.add(tx, self.buckets.meta, "roles", role_list)
            for resource in resource_list:
                bucket = allows_bucket(resource)
                for role in role_list:
                    self.store.add(tx, bucket, role, permission_list)
            for role in role_list:
                self.store.add(tx, self.buckets.resources, role, resource_list)

        logger.debug(
            f"Allowed {permission_list} on {resource_list} for roles {role_list}"
        )

    async def _allow_grants(self, grants: Any) -> None:
        if not isinstance(grants, (list, tuple)):
            raise InvalidArgumentError("allow expects a list of grant records")
        try:
            records = [
                g if isinstance(g, RoleGrant) else RoleGrant.model_validate(g)
                for g in grants
            ]
        except ValidationError as e:
            raise InvalidArgumentError(f"Invalid grant record: {e}") from e

        for record in records:
            for roles, resources, permissions in record.demux():
                await self.allow(roles, resources, permissions)

    async def remove_allow(
        self,
        role: Identifier,
        resources: Identifiers,
        permissions: Optional[Identifiers] = None,
    ) -> None:
        """Revoke ``permissions`` (or everything) of ``role`` on ``resources``."""
        await self.remove_permissions(role, resources, permissions)

    async def remove_permissions(
        self,
        role: Identifier,
        resources: Identifiers,
        permissions: Optional[Identifiers] = None,
    ) -> None:
        """Remove permissions in two phases.

        The first transaction removes the permissions, or the whole record when
        ``permissions`` is ``None``. After removing specific permissions, a
        second transaction drops resources left without any permission from
        the role's resource index. The phases are not atomic together; a
        failure in the second raises :class:`CleanupError` and leaves a stale
        but harmless index entry.
        """
        role = make_id(role, "role")
        resources = make_list(resources, "resources")
        permissions = (
            None if permissions is None else make_list(permissions, "permissions")
        )

        async with self._transaction() as tx:
            for resource in resources:
                bucket = allows_bucket(resource)
                if permissions is not None:
                    self.store.remove(tx, bucket, role, permissions)
                else:
                    self.store.delete(tx, bucket, [role])
                    self.store.remove(tx, self.buckets.resources, role, [resource])

        logger.debug(
            f"Removed {permissions if permissions is not None else 'all permissions'} "
            f"on {resources} from role {role}"
        )

        if permissions is None:
            return

        try:
            emptied = []
            for resource in resources:
                if not await self.store.get(allows_bucket(resource), role):
                    emptied.append(resource)
            async with self._transaction() as tx:
                for resource in emptied:
                    self.store.remove(tx, self.buckets.resources, role, [resource])
        except Exception as e:
            logger.error(
                f"Failed to clean resource index of role {role} for {resources}: {e}. "
                "Permissions were already removed."
            )
            raise CleanupError(
                "remove_permissions",
                f"resource index cleanup failed for role {role}",
            ) from e

    # ------------------------------------------------------------------
    # Membership
    async def add_user_roles(self, user_id: Identifier, roles: Identifiers) -> None:
        """Assign ``roles`` to ``user_id``."""
        user = make_id(user_id, "user_id")
        role_list = make_list(roles, "roles")

        async with self._transaction() as tx:
            self.store.add(tx, self.buckets.meta, "users", [user])
            self.store.add(tx, self.buckets.users, user, role_list)
            for role in role_list:
                self.store.add(tx, self.buckets.roles, role, [user])

        logger.debug(f"Added roles {role_list} to user {user}")

    async def remove_user_roles(self, user_id: Identifier, roles: Identifiers) -> None:
        """Take ``roles`` away from ``user_id``."""
        user = make_id(user_id, "user_id")
        role_list = make_list(roles, "roles")

        async with self._transaction() as tx:
            self.store.remove(tx, self.buckets.users, user, role_list)
            for role in role_list:
                self.store.remove(tx, self.buckets.roles, role, [user])

        logger.debug(f"Removed roles {role_list} from user {user}")

    async def user_roles(self, user_id: Identifier) -> set[str]:
        """Return the roles directly assigned to ``user_id``."""
        return await self.store.get(self.buckets.users, make_id(user_id, "user_id"))

    async def role_users(self, role: Identifier) -> set[str]:
        """Return the users holding ``role``."""
        return await self.store.get(self.buckets.roles, make_id(role, "role"))

    async def has_role(self, user_id: Identifier, role: Identifier) -> bool:
        role_id = make_id(role, "role")
        return role_id in await self.user_roles(user_id)

    # ------------------------------------------------------------------
    # Hierarchy
    async def add_role_parents(self, role: Identifier, parents: Identifiers) -> None:
        """Make ``role`` inherit the permissions of ``parents``."""
        role_id = make_id(role, "role")
        parent_list = make_list(parents, "parents")

        async with self._transaction() as tx:
            self.store.add(tx, self.buckets.meta, "roles", [role_id])
            self.store.add(tx, self.buckets.parents, role_id, parent_list)

        logger.debug(f"Added parents {parent_list} to role {role_id}")

    async def remove_role_parents(
        self, role: Identifier, parents: Optional[Identifiers] = None
    ) -> None:
        """Remove the given parents of ``role``, or all of them."""
        role_id = make_id(role, "role")
        parent_list = None if parents is None else make_list(parents, "parents")

        async with self._transaction() as tx:
            if parent_list is not None:
                self.store.remove(tx, self.buckets.parents, role_id, parent_list)
            else:
                self.store.delete(tx, self.buckets.parents, [role_id])

        logger.debug(
            f"Removed parents {parent_list if parent_list is not None else 'all'} "
            f"from role {role_id}"
        )

    # ------------------------------------------------------------------
    # Removal
    async def remove_role(self, role: Identifier) -> None:
        """Delete a role's grants, resource index, parents and user list.

        Users keep the role name in their own role sets. The resource read and
        the deleting transaction are not atomic together, so a grant made to
        the role in between may survive in its permission bucket.
        """
        role_id = make_id(role, "role")
        resources = await self.store.get(self.buckets.resources, role_id)

        async with self._transaction() as tx:
            for resource in resources:
                self.store.delete(tx, allows_bucket(resource), [role_id])
            self.store.delete(tx, self.buckets.resources, [role_id])
            self.store.delete(tx, self.buckets.parents, [role_id])
            self.store.delete(tx, self.buckets.roles, [role_id])
            self.store.remove(tx, self.buckets.meta, "roles", [role_id])

        logger.debug(f"Removed role {role_id}")

    async def remove_resource(self, resource: Identifier) -> None:
        """Delete every grant on ``resource`` for every known role."""
        resource_id = make_id(resource, "resource")
        roles = await self.store.get(self.buckets.meta, "roles")

        async with self._transaction() as tx:
            self.store.delete(tx, allows_bucket(resource_id), sorted(roles))
            for role in roles:
                self.store.remove(tx, self.buckets.resources, role, [resource_id])

        logger.debug(f"Removed resource {resource_id}")

    # ------------------------------------------------------------------
    # Access decisions
    async def is_allowed(
        self, user_id: Identifier, resource: Identifier, permissions: Identifiers
    ) -> bool:
        """Return ``True`` if the user holds every one of ``permissions``.

        Args:
            user_id: User to check.
            resource: Resource being accessed.
            permissions: One permission or a list; all are required.

        Returns:
            ``False`` for users without roles.
        """
        user = make_id(user_id, "user_id")
        resource_id = make_id(resource, "resource")
        permission_list = _required_permissions(permissions)

        roles = await self.user_roles(user)
        if not roles:
            return False
        return await self.are_any_roles_allowed(sorted(roles), resource_id, permission_list)

    async def are_any_roles_allowed(
        self, roles: Identifiers, resource: Identifier, permissions: Identifiers
    ) -> bool:
        """Return ``True`` if ``roles`` together hold every one of ``permissions``."""
        role_list = make_list(roles, "roles")
        resource_id = make_id(resource, "resource")
        permission_list = _required_permissions(permissions)

        if not role_list:
            return False
        return await self.check_permissions(role_list, resource_id, permission_list)

    async def check_permissions(
        self, roles: Identifiers, resource: Identifier, permissions: Identifiers
    ) -> bool:
        """Resolve ``permissions`` against ``roles`` and then their ancestors.

        Permissions satisfied at one level are not asked for again further up.
        ``*`` grants everything. Roles already visited are skipped, so cyclic
        hierarchies terminate.
        """
        frontier = make_list(roles, "roles")
        bucket = allows_bucket(make_id(resource, "resource"))
        remaining = _required_permissions(permissions)
        visited: set[str] = set()

        while frontier:
            visited.update(frontier)
            granted = await self.store.union(bucket, frontier)
            if WILDCARD in granted:
                return True
            remaining = [p for p in remaining if p not in granted]
            if not remaining:
                return True
            parents = await self._roles_parents(frontier)
            frontier = sorted(parents - visited)

        return False

    # ------------------------------------------------------------------
    # Enumeration
    async def allowed_permissions(
        self, user_id: Identifier, resources: Identifiers
    ) -> Dict[str, set[str]]:
        """Return ``{resource: permissions}`` the user holds, inherited ones included."""
        user = make_id(user_id, "user_id")
        resource_list = make_list(resources, "resources")

        if self._batch_store is not None:
            return await self.optimized_allowed_permissions(user, resource_list)
        return await self._allowed_permissions(user, resource_list)

    async def _allowed_permissions(
        self, user_id: str, resources: List[str]
    ) -> Dict[str, set[str]]:
        roles = sorted(await self.user_roles(user_id))
        results = await asyncio.gather(
            *(self._resource_permissions(roles, resource) for resource in resources)
        )
        return dict(zip(resources, results))

    async def optimized_allowed_permissions(
        self, user_id: Identifier, resources: Identifiers
    ) -> Dict[str, set[str]]:
        """Same result as :meth:`allowed_permissions` in a constant number of reads.

        Resolves the user's full ancestor set first, then unions every
        resource bucket over it in one batched call. Falls back to per-resource
        resolution when the store has no batched union.
        """
        user = make_id(user_id, "user_id")
        resource_list = make_list(resources, "resources")

        if self._batch_store is None:
            return await self._allowed_permissions(user, resource_list)

        roles = await self._all_user_roles(user)
        if not roles:
            return {resource: set() for resource in resource_list}

        buckets = [allows_bucket(resource) for resource in resource_list]
        response = await self._batch_store.unions(buckets, roles)
        return {
            resource_from_bucket(bucket): set(permissions)
            for bucket, permissions in response.items()
        }

    async def what_resources(
        self, roles: Identifiers, permissions: Optional[Identifiers] = None
    ) -> Union[Dict[str, set[str]], set[str]]:
        """Return what ``roles`` (and their ancestors) may do.

        Without ``permissions`` returns ``{resource: permissions}``. With them,
        returns the resources on which any of ``permissions`` is held. A
        ``*`` grant matches every requested permission.
        """
        return await self.permitted_resources(roles, permissions)

    async def permitted_resources(
        self, roles: Identifiers, permissions: Optional[Identifiers] = None
    ) -> Union[Dict[str, set[str]], set[str]]:
        role_list = make_list(roles, "roles")
        permission_list = (
            None if permissions is None else make_list(permissions, "permissions")
        )

        resources = await self._roles_resources(role_list)
        effective = await asyncio.gather(
            *(self._resource_permissions(role_list, resource) for resource in resources)
        )

        if permission_list is None:
            return dict(zip(resources, effective))

        wanted = set(permission_list)
        return {
            resource
            for resource, granted in zip(resources, effective)
            if WILDCARD in granted or granted & wanted
        }

    # ------------------------------------------------------------------
    # Hierarchy helpers
    async def _roles_parents(self, roles: Sequence[str]) -> set[str]:
        return await self.store.union(self.buckets.parents, roles)

    async def _all_roles(self, roles: Iterable[str]) -> List[str]:
        """Return ``roles`` plus every ancestor, each once."""
        result = list(dict.fromkeys(roles))
        seen = set(result)
        frontier = result
        while frontier:
            parents = await self._roles_parents(frontier)
            frontier = sorted(parents - seen)
            seen.update(frontier)
            result.extend(frontier)
        return result

    async def _all_user_roles(self, user_id: str) -> List[str]:
        roles = await self.user_roles(user_id)
        if not roles:
            return []
        return await self._all_roles(sorted(roles))

    async def _resource_permissions(
        self, roles: Sequence[str], resource: str
    ) -> set[str]:
        """Union of direct and inherited permissions of ``roles`` on ``resource``."""
        bucket = allows_bucket(resource)
        permissions: set[str] = set()
        visited: set[str] = set()
        frontier = list(roles)

        while frontier:
            visited.update(frontier)
            granted, parents = await asyncio.gather(
                self.store.union(bucket, frontier), self._roles_parents(frontier)
            )
            permissions |= granted
            frontier = sorted(parents - visited)

        return permissions

    async def _roles_resources(self, roles: Sequence[str]) -> List[str]:
        all_roles = await self._all_roles(roles)
        per_role = await asyncio.gather(
            *(self.store.get(self.buckets.resources, role) for role in all_roles)
        )
        return sorted(set().union(*per_role))
