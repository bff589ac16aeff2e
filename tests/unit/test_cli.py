import asyncio

import pytest
from typer.testing import CliRunner

import aclify.stores as stores
from aclify import Acl
from aclify.cli import app
from aclify.stores import MemoryStore


@pytest.fixture
def store(tmp_path, monkeypatch) -> MemoryStore:
    store = MemoryStore()
    monkeypatch.setattr(stores, "_store_instance", store)
    monkeypatch.setenv("ACLIFY_CONFIG", str(tmp_path / "missing.yaml"))
    monkeypatch.delenv("ACLIFY_STORE", raising=False)
    monkeypatch.delenv("ACLIFY_DATABASE_URL", raising=False)
    return store


def test_allow_assign_and_check(store):
    runner = CliRunner()

    result = runner.invoke(app, ["allow", "member", "blogs", "view", "edit"])
    assert result.exit_code == 0, f"Command failed with output: {result.stdout}"
    assert "Allowed view, edit on blogs for member" in result.stdout

    result = runner.invoke(app, ["assign", "joed", "member"])
    assert result.exit_code == 0, f"Command failed with output: {result.stdout}"

    result = runner.invoke(app, ["check", "joed", "blogs", "view", "edit"])
    assert result.exit_code == 0, f"Expected access, got: {result.stdout}"
    assert "allowed" in result.stdout

    result = runner.invoke(app, ["check", "joed", "blogs", "publish"])
    assert result.exit_code == 1, f"Expected exit code 1, got {result.exit_code}"
    assert "denied" in result.stdout


def test_roles_command(store):
    asyncio.run(Acl(store).add_user_roles("joed", ["guest", "member"]))
    runner = CliRunner()

    result = runner.invoke(app, ["roles", "joed"])
    assert result.exit_code == 0, f"Command failed with output: {result.stdout}"
    assert result.stdout.splitlines() == ["guest", "member"]

    result = runner.invoke(app, ["roles", "nobody"])
    assert result.exit_code == 0
    assert "No roles found" in result.stdout


def test_resources_and_permissions_commands(store):
    acl = Acl(store)
    asyncio.run(acl.allow("member", "blogs", ["view", "edit"]))
    asyncio.run(acl.allow("editor", "drafts", "publish"))
    asyncio.run(acl.add_role_parents("editor", "member"))
    asyncio.run(acl.add_user_roles("jsmith", "editor"))
    runner = CliRunner()

    result = runner.invoke(app, ["resources", "editor"])
    assert result.exit_code == 0, f"Command failed with output: {result.stdout}"
    assert result.stdout.splitlines() == ["blogs: edit, view", "drafts: publish"]

    result = runner.invoke(app, ["resources", "editor", "-p", "publish"])
    assert result.exit_code == 0
    assert result.stdout.splitlines() == ["drafts"]

    result = runner.invoke(app, ["resources", "nobody"])
    assert "No resources found" in result.stdout

    result = runner.invoke(app, ["permissions", "jsmith", "blogs", "news"])
    assert result.exit_code == 0, f"Command failed with output: {result.stdout}"
    assert result.stdout.splitlines() == ["blogs: edit, view", "news: "]


def test_revoke_unassign_and_removals(store):
    acl = Acl(store)
    runner = CliRunner()
    runner.invoke(app, ["allow", "member", "blogs", "view", "edit"])
    runner.invoke(app, ["allow", "member", "news", "read"])
    runner.invoke(app, ["assign", "joed", "member"])

    result = runner.invoke(app, ["revoke", "member", "blogs", "edit"])
    assert result.exit_code == 0, f"Command failed with output: {result.stdout}"
    assert "Revoked edit on blogs from member" in result.stdout
    assert asyncio.run(acl.what_resources("member")) == {
        "blogs": {"view"},
        "news": {"read"},
    }

    result = runner.invoke(app, ["revoke", "member", "blogs"])
    assert "Revoked all permissions on blogs from member" in result.stdout
    assert asyncio.run(acl.what_resources("member")) == {"news": {"read"}}

    result = runner.invoke(app, ["remove-resource", "news"])
    assert result.exit_code == 0
    assert asyncio.run(acl.what_resources("member")) == {}

    runner.invoke(app, ["parents", "member", "guest"])
    result = runner.invoke(app, ["remove-role", "member"])
    assert result.exit_code == 0
    assert "Removed role member" in result.stdout
    assert asyncio.run(store.get(acl.buckets.parents, "member")) == set()

    result = runner.invoke(app, ["unassign", "joed", "member"])
    assert result.exit_code == 0
    assert asyncio.run(acl.user_roles("joed")) == set()
