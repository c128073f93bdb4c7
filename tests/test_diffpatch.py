"""Tests for the structural diff/patch engine.

Covers the delta format, array move detection, long-text patches, reversal,
and the failure modes of applying a delta to the wrong base.
"""

import pytest

from specvault.engine.diffpatch import ARRAY_MOVE, TEXT_DIFF, DiffPatcher, object_hash
from specvault.exceptions import PatchError


@pytest.fixture()
def patcher() -> DiffPatcher:
    return DiffPatcher()


PETSTORE_V1 = {
    "openapi": "3.0.0",
    "info": {"title": "Petstore", "version": "1.0.0"},
    "paths": {
        "/pets": {
            "get": {
                "summary": "List all pets",
                "parameters": [
                    {"name": "limit", "in": "query", "required": False},
                    {"name": "offset", "in": "query", "required": False},
                ],
            }
        }
    },
    "tags": ["pets", "store"],
}

PETSTORE_V2 = {
    "openapi": "3.0.0",
    "info": {"title": "Petstore", "version": "1.1.0", "license": {"name": "MIT"}},
    "paths": {
        "/pets": {
            "get": {
                "summary": "List every pet",
                "parameters": [
                    {"name": "offset", "in": "query", "required": False},
                    {"name": "limit", "in": "query", "required": True},
                ],
            },
            "post": {"summary": "Create a pet"},
        }
    },
    "tags": ["pets"],
}


class TestObjectHash:

    def test_key_order_is_ignored(self):
        assert object_hash({"a": 1, "b": [1, 2]}) == object_hash({"b": [1, 2], "a": 1})

    def test_different_values_differ(self):
        assert object_hash({"a": 1}) != object_hash({"a": 2})


class TestDiff:

    def test_equal_documents_have_no_delta(self, patcher):
        assert patcher.diff(PETSTORE_V1, dict(PETSTORE_V1)) is None

    def test_added_key(self, patcher):
        assert patcher.diff({"a": 1}, {"a": 1, "b": 2}) == {"b": [2]}

    def test_replaced_value(self, patcher):
        assert patcher.diff({"a": 1}, {"a": 2}) == {"a": [1, 2]}

    def test_deleted_key(self, patcher):
        assert patcher.diff({"a": 1, "b": 2}, {"a": 1}) == {"b": [2, 0, 0]}

    def test_type_change_is_a_replacement(self, patcher):
        assert patcher.diff({"a": [1]}, {"a": {"x": 1}}) == {"a": [[1], {"x": 1}]}

    def test_null_is_a_real_value(self, patcher):
        assert patcher.diff({"a": None}, {"a": 0}) == {"a": [None, 0]}
        assert patcher.diff({"a": None}, {}) == {"a": [None, 0, 0]}

    def test_boolean_does_not_equal_number(self, patcher):
        assert patcher.diff([1], [True]) is not None

    def test_array_append(self, patcher):
        assert patcher.diff([1, 2], [1, 2, 3]) == {"_t": "a", "2": [3]}

    def test_array_removal(self, patcher):
        assert patcher.diff([1, 2, 3], [1, 3]) == {"_t": "a", "_1": [2, 0, 0]}

    def test_array_move_stores_position_only(self, patcher):
        left = [{"id": "a"}, {"id": "b"}, {"id": "c"}]
        right = [{"id": "c"}, {"id": "a"}, {"id": "b"}]
        delta = patcher.diff(left, right)
        assert delta == {"_t": "a", "_2": ["", 0, ARRAY_MOVE]}

    def test_short_strings_are_replaced_whole(self, patcher):
        assert patcher.diff("short text", "short test") == ["short text", "short test"]

    def test_long_strings_become_text_patches(self, patcher):
        old = "Returns all pets from the system that the user has access to. " * 3
        new = old.replace("all pets", "every pet")
        delta = patcher.diff(old, new)
        assert delta[1:] == [0, TEXT_DIFF]
        assert isinstance(delta[0], str)
        assert "@@" in delta[0]

    def test_text_threshold_is_configurable(self):
        patcher = DiffPatcher(text_diff_min_length=5)
        delta = patcher.diff("hello world", "hello there")
        assert delta[2] == TEXT_DIFF


class TestPatch:

    @pytest.mark.parametrize("old,new", [
        ({"a": 1}, {"a": 1, "b": 2}),
        (PETSTORE_V1, PETSTORE_V2),
        (PETSTORE_V2, PETSTORE_V1),
        ([1, 2, 3, 4, 5], [5, 1, 3, 6]),
        ([{"id": 1}, {"id": 2}, {"id": 3}], [{"id": 3}, {"id": 2}, {"id": 1}]),
        ({"nested": [[1, 2], [3, 4]]}, {"nested": [[3, 4], [1, 2, 5]]}),
        ({"a": None, "b": False}, {"a": False, "b": None}),
    ])
    def test_patch_reproduces_new_document(self, patcher, old, new):
        delta = patcher.diff(old, new)
        assert patcher.patch(old, delta) == new

    def test_patch_does_not_mutate_base(self, patcher):
        base = {"list": [1, 2], "obj": {"x": 1}}
        delta = patcher.diff(base, {"list": [2], "obj": {"x": 2}})
        patcher.patch(base, delta)
        assert base == {"list": [1, 2], "obj": {"x": 1}}

    def test_patch_with_no_delta_returns_copy(self, patcher):
        base = {"a": [1]}
        result = patcher.patch(base, None)
        assert result == base
        assert result is not base

    def test_long_text_round_trip(self, patcher):
        old = {"description": "The pet store exposes endpoints for listing and creating pets. " * 4}
        new = {"description": old["description"].replace("creating", "adopting") + " Beta."}
        assert patcher.patch(old, patcher.diff(old, new)) == new

    def test_object_delta_on_array_fails(self, patcher):
        with pytest.raises(PatchError):
            patcher.patch([1, 2], {"a": [1]})

    def test_array_delta_on_object_fails(self, patcher):
        with pytest.raises(PatchError):
            patcher.patch({"a": 1}, {"_t": "a", "0": [1]})

    def test_out_of_range_removal_fails(self, patcher):
        with pytest.raises(PatchError):
            patcher.patch([1], {"_t": "a", "_5": [9, 0, 0]})

    def test_text_patch_on_non_string_fails(self, patcher):
        old = "The quick brown fox jumps over the lazy dog, again and again and again."
        new = old.replace("lazy", "sleepy")
        delta = patcher.diff(old, new)
        with pytest.raises(PatchError):
            patcher.patch(42, delta)

    def test_invalid_delta_node_fails(self, patcher):
        with pytest.raises(PatchError):
            patcher.patch({"a": 1}, {"a": [1, 2, 3, 4]})

    @pytest.mark.parametrize("delta", [
        {"_t": "a", "_0": ["", "x", ARRAY_MOVE]},
        {"_t": "a", "_0": ["", -2, ARRAY_MOVE]},
        {"_t": "a", "_0": ["", True, ARRAY_MOVE]},
        {"_t": "a", "_0": "gone"},
        {"_t": "a", "x": [5]},
        {"_t": "a", "-1": [5]},
        {"a": ["@@ not a patch", 0, TEXT_DIFF]},
    ])
    def test_malformed_delta_raises_patch_error(self, patcher, delta):
        with pytest.raises(PatchError):
            patcher.patch({"a": "text"} if "a" in delta else [1, 2], delta)

    def test_malformed_move_cannot_be_reversed(self, patcher):
        with pytest.raises(PatchError):
            patcher.reverse({"_t": "a", "_0": ["", "x", ARRAY_MOVE]})

    def test_deleting_the_root_fails(self, patcher):
        with pytest.raises(PatchError):
            patcher.patch({"a": 1}, [{"a": 1}, 0, 0])


class TestReverse:

    @pytest.mark.parametrize("old,new", [
        ({"a": 1}, {"b": 2}),
        (PETSTORE_V1, PETSTORE_V2),
        ([1, 2, 3], [3, 1, 2]),
        ([{"id": 1}, {"id": 2}, {"id": 3}], [{"id": 2}, {"id": 4}, {"id": 1}]),
    ])
    def test_unpatch_recovers_base(self, patcher, old, new):
        delta = patcher.diff(old, new)
        assert patcher.unpatch(patcher.patch(old, delta), delta) == old

    def test_reverse_of_addition_is_deletion(self, patcher):
        assert patcher.reverse({"b": [2]}) == {"b": [2, 0, 0]}

    def test_reverse_of_move(self, patcher):
        assert patcher.reverse({"_t": "a", "_2": ["", 0, ARRAY_MOVE]}) == {
            "_t": "a",
            "_0": ["", 2, ARRAY_MOVE],
        }

    def test_reverse_of_text_patch(self, patcher):
        old = "A long description of the endpoint that lists pets in the store catalogue."
        new = old.replace("lists", "returns")
        delta = patcher.diff(old, new)
        assert patcher.patch(new, patcher.reverse(delta)) == old

    def test_reverse_of_none(self, patcher):
        assert patcher.reverse(None) is None
