"""Command line interface for managing access-control state."""

from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional

import typer

from aclify import Acl, get_store, load_config

app = typer.Typer(help="CLI for aclify access control")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """aclify CLI entry point."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)


def _acl() -> Acl:
    config = load_config()
    return Acl(get_store(), buckets=config.buckets)


def _echo_permissions(permissions: Dict[str, set[str]]) -> None:
    for resource in sorted(permissions):
        typer.echo(f"{resource}: {', '.join(sorted(permissions[resource]))}")


@app.command("allow")
def allow(role: str, resource: str, permissions: List[str]) -> None:
    """Grant PERMISSIONS on RESOURCE to ROLE.

    Example:
        aclify allow member blogs view edit
    """
    asyncio.run(_acl().allow(role, resource, permissions))
    typer.echo(f"Allowed {', '.join(permissions)} on {resource} for {role}")


@app.command("revoke")
def revoke(
    role: str, resource: str, permissions: Optional[List[str]] = typer.Argument(None)
) -> None:
    """Revoke PERMISSIONS on RESOURCE from ROLE, or all of them when none given."""
    asyncio.run(_acl().remove_allow(role, resource, permissions or None))
    revoked = ", ".join(permissions) if permissions else "all permissions"
    typer.echo(f"Revoked {revoked} on {resource} from {role}")


@app.command("assign")
def assign(user: str, roles: List[str]) -> None:
    """Give ROLES to USER."""
    asyncio.run(_acl().add_user_roles(user, roles))
    typer.echo(f"Assigned {', '.join(roles)} to {user}")


@app.command("unassign")
def unassign(user: str, roles: List[str]) -> None:
    """Take ROLES away from USER."""
    asyncio.run(_acl().remove_user_roles(user, roles))
    typer.echo(f"Unassigned {', '.join(roles)} from {user}")


@app.command("parents")
def parents(role: str, parent_roles: List[str]) -> None:
    """Make ROLE inherit from PARENT_ROLES."""
    asyncio.run(_acl().add_role_parents(role, parent_roles))
    typer.echo(f"{role} now inherits from {', '.join(parent_roles)}")


@app.command("check")
def check(user: str, resource: str, permissions: List[str]) -> None:
    """
    Check whether USER holds every one of PERMISSIONS on RESOURCE.

    Exits with code 1 when access is denied.

    Example:
        aclify check joed blogs view
    """
    allowed = asyncio.run(_acl().is_allowed(user, resource, permissions))
    if not allowed:
        typer.secho("denied", fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.secho("allowed", fg=typer.colors.GREEN)


@app.command("roles")
def roles(user: str) -> None:
    """List the roles assigned to USER."""
    user_roles = asyncio.run(_acl().user_roles(user))
    if not user_roles:
        typer.echo("No roles found")
        return
    for role in sorted(user_roles):
        typer.echo(role)


@app.command("resources")
def resources(
    role: str,
    permission: Optional[List[str]] = typer.Option(
        None, "--permission", "-p", help="Only list resources with any of these"
    ),
) -> None:
    """List resources ROLE (and its ancestors) hold permissions on."""
    result = asyncio.run(_acl().what_resources(role, permission or None))
    if not result:
        typer.echo("No resources found")
        return
    if isinstance(result, dict):
        _echo_permissions(result)
    else:
        for resource in sorted(result):
            typer.echo(resource)


@app.command("permissions")
def permissions(user: str, resources: List[str]) -> None:
    """Show the permissions USER holds on each of RESOURCES."""
    _echo_permissions(asyncio.run(_acl().allowed_permissions(user, resources)))


@app.command("remove-role")
def remove_role(role: str) -> None:
    """Delete ROLE with its grants and parents."""
    asyncio.run(_acl().remove_role(role))
    typer.echo(f"Removed role {role}")


@app.command("remove-resource")
def remove_resource(resource: str) -> None:
    """Delete every grant on RESOURCE."""
    asyncio.run(_acl().remove_resource(resource))
    typer.echo(f"Removed resource {resource}")


if __name__ == "__main__":
    app()
