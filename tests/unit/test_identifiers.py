import pytest

from aclify.buckets import AllowsBucket, allows_bucket, resource_from_bucket, split_bucket
from aclify.errors import InvalidArgumentError
from aclify.utils.identifiers import make_id, make_list


def test_make_list_wraps_single_values():
    assert make_list("admin") == ["admin"]
    assert make_list(7) == ["7"]


def test_make_list_normalizes_collections_and_drops_duplicates():
    assert make_list(["a", 1, "a", "b", 1]) == ["a", "1", "b"]
    assert make_list(("x",)) == ["x"]
    assert sorted(make_list({"p", "q"})) == ["p", "q"]
    assert make_list([]) == []


@pytest.mark.parametrize("value", [None, 1.5, True, "", ["ok", None], [["nested"]], {"a": 1}])
def test_make_list_rejects_malformed_input(value):
    with pytest.raises(InvalidArgumentError):
        make_list(value, "roles")


def test_make_id_names_the_parameter():
    with pytest.raises(InvalidArgumentError, match="user_id"):
        make_id(None, "user_id")
    assert make_id(0, "user_id") == "0"


def test_allows_bucket_is_structured():
    bucket = allows_bucket("blogs")
    assert bucket == AllowsBucket("blogs")
    assert str(bucket) == "allows_blogs"
    assert resource_from_bucket(bucket) == "blogs"
    assert resource_from_bucket("allows_forums") == "forums"


def test_allows_bucket_does_not_collide_with_plain_bucket_names():
    assert allows_bucket("users") != "allows_users"
    assert split_bucket(allows_bucket("a:b")) == ("allows", "a:b")
    assert split_bucket("allows_a:b") == ("bucket", "allows_a:b")
