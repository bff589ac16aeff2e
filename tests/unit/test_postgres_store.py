import pytest

from aclify.buckets import allows_bucket


@pytest.mark.asyncio
async def test_postgres_store_crud(postgres_store):
    store = postgres_store
    tx = store.begin()
    store.add(tx, "users", "joed", ["guest", "member"])
    store.add(tx, "users", "joed", ["guest"])
    store.add(tx, allows_bucket("blogs"), "guest", ["view"])
    store.add(tx, allows_bucket("blogs"), "member", ["edit"])
    await store.end(tx)

    assert await store.get("users", "joed") == {"guest", "member"}
    assert await store.union(allows_bucket("blogs"), ["guest", "member"]) == {
        "view",
        "edit",
    }
    result = await store.unions(
        [allows_bucket("blogs"), allows_bucket("news")], ["member"]
    )
    assert result == {allows_bucket("blogs"): {"edit"}, allows_bucket("news"): set()}

    tx = store.begin()
    store.remove(tx, "users", "joed", ["guest"])
    store.delete(tx, allows_bucket("blogs"), ["member"])
    await store.end(tx)
    assert await store.get("users", "joed") == {"member"}
    assert await store.get(allows_bucket("blogs"), "member") == set()
