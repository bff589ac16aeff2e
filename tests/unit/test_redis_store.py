import pytest

from aclify.buckets import allows_bucket
from aclify.stores.redis import RedisStore


def test_redis_store_defaults():
    store = RedisStore()
    assert store.host == "localhost"
    assert store.port == 6379
    assert store.prefix == "acl"


def test_redis_store_keys_are_escaped():
    store = RedisStore(prefix="acl")
    assert store._key("users", "a:b") == "acl:bucket:users:a%3Ab"
    assert store._key(allows_bucket("x:y"), "r") == "acl:allows:x%3Ay:r"
    assert store._key(allows_bucket("a"), "b:c") != store._key(allows_bucket("a:b"), "c")


@pytest.mark.asyncio
async def test_redis_store_crud(redis_store):
    store = redis_store
    tx = store.begin()
    store.add(tx, "users", "joed", ["guest", "member"])
    store.add(tx, allows_bucket("blogs"), "guest", ["view"])
    store.add(tx, allows_bucket("blogs"), "member", ["edit"])
    await store.end(tx)

    assert await store.get("users", "joed") == {"guest", "member"}
    assert await store.union(allows_bucket("blogs"), ["guest", "member"]) == {
        "view",
        "edit",
    }
    result = await store.unions(
        [allows_bucket("blogs"), allows_bucket("news")], ["guest"]
    )
    assert result == {allows_bucket("blogs"): {"view"}, allows_bucket("news"): set()}

    tx = store.begin()
    store.remove(tx, "users", "joed", ["guest"])
    store.delete(tx, allows_bucket("blogs"), ["member"])
    await store.end(tx)
    assert await store.get("users", "joed") == {"member"}
    assert await store.get(allows_bucket("blogs"), "member") == set()
