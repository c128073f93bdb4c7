"""Structural diff and patch for JSON-like documents.

Deltas are plain JSON values, so they can be serialized, compressed and
stored next to full snapshots:

    [new]                      value added
    [old, new]                 value replaced
    [old, 0, 0]                value deleted
    [patch_text, 0, 2]         long string edited (diff-match-patch text)
    {"key": delta, ...}        object with changed keys
    {"_t": "a",                array:
     "3": delta,                 change or insertion at new index 3
     "_1": [old, 0, 0],          removal at old index 1
     "_2": ["", 5, 3]}           item moved from old index 2 to new index 5

Array items are matched by a hash of their canonical JSON form, so a moved
object is recorded by position only and never duplicated in the delta.
"""

import copy
import hashlib
import json
from typing import Any, Callable, Optional

from diff_match_patch import diff_match_patch

from ..exceptions import PatchError

TEXT_DIFF = 2
ARRAY_MOVE = 3

DEFAULT_TEXT_DIFF_MIN_LENGTH = 60

# Placeholder for "no value here" (absent key, deleted item). JSON null is a
# real value and must stay distinguishable from it.
_MISSING = object()

_CONTAINERS = ("object", "array")

Delta = Any


def object_hash(value: Any) -> str:
    """SHA-256 of the canonical JSON form of *value* (key order ignored)."""
    canonical = json.dumps(value, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


def _kind(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, (int, float)):
        return "number"
    if isinstance(value, str):
        return "string"
    if isinstance(value, list):
        return "array"
    if isinstance(value, dict):
        return "object"
    raise TypeError(f"Unsupported value type in document: {type(value).__name__}")


def _is_array_delta(delta: Any) -> bool:
    return isinstance(delta, dict) and delta.get("_t") == "a"


def _is_marker(delta: Any, marker: int) -> bool:
    return isinstance(delta, list) and len(delta) == 3 and delta[2] == marker


class DiffPatcher:
    """Computes and applies deltas between two document states.

    Stateless apart from configuration; one instance can be shared.
    """

    def __init__(self, text_diff_min_length: int = DEFAULT_TEXT_DIFF_MIN_LENGTH):
        self.text_diff_min_length = text_diff_min_length
        self._dmp = diff_match_patch()

    # ------------------------------------------------------------------
    # diff
    # ------------------------------------------------------------------

    def diff(self, left: Any, right: Any) -> Optional[Delta]:
        """Delta turning *left* into *right*, or None when they are equal."""
        return self._diff(left, right)

    def _diff(self, left: Any, right: Any) -> Optional[Delta]:
        if left is _MISSING:
            return [right]
        if right is _MISSING:
            return [left, 0, 0]

        left_kind, right_kind = _kind(left), _kind(right)
        if left_kind != right_kind:
            return [left, right]
        if left_kind == "object":
            return self._diff_objects(left, right)
        if left_kind == "array":
            return self._diff_arrays(left, right)
        if left == right:
            return None
        if left_kind == "string":
            return self._diff_text(left, right)
        return [left, right]

    def _diff_text(self, left: str, right: str) -> Delta:
        if len(left) < self.text_diff_min_length or len(right) < self.text_diff_min_length:
            return [left, right]
        patches = self._dmp.patch_make(left, right)
        return [self._dmp.patch_toText(patches), 0, TEXT_DIFF]

    def _diff_objects(self, left: dict, right: dict) -> Optional[Delta]:
        result = {}
        for key, value in left.items():
            child = self._diff(value, right.get(key, _MISSING))
            if child is not None:
                result[key] = child
        for key, value in right.items():
            if key not in left:
                result[key] = [value]
        return result or None

    def _diff_arrays(self, left: list, right: list) -> Optional[Delta]:
        hashes_left: dict = {}
        hashes_right: dict = {}

        def match(index1: int, index2: int) -> bool:
            return self._match_items(left, right, index1, index2, hashes_left, hashes_right)

        len1, len2 = len(left), len(right)
        # (new index, old value, new value) pairs that need an inner diff
        pairs: list[tuple[int, Any, Any]] = []

        head = 0
        while head < len1 and head < len2 and match(head, head):
            pairs.append((head, left[head], right[head]))
            head += 1

        tail = 0
        while head + tail < len1 and head + tail < len2 and match(len1 - 1 - tail, len2 - 1 - tail):
            pairs.append((len2 - 1 - tail, left[len1 - 1 - tail], right[len2 - 1 - tail]))
            tail += 1

        result: dict = {"_t": "a"}
        if head + tail == len1:
            # A block was inserted (or nothing changed at this level).
            for index in range(head, len2 - tail):
                result[str(index)] = [right[index]]
        elif head + tail == len2:
            # A block was removed.
            for index in range(head, len1 - tail):
                result[f"_{index}"] = [left[index], 0, 0]
        else:
            indices1, indices2 = _longest_common_subsequence(head, len1 - tail, head, len2 - tail, match)
            matched_left = set(indices1)
            old_index_for = dict(zip(indices2, indices1))

            removed: list[int] = []
            for index in range(head, len1 - tail):
                if index not in matched_left:
                    result[f"_{index}"] = [left[index], 0, 0]
                    removed.append(index)

            for index in range(head, len2 - tail):
                if index in old_index_for:
                    pairs.append((index, left[old_index_for[index]], right[index]))
                    continue
                for position, removed_index in enumerate(removed):
                    if match(removed_index, index):
                        result[f"_{removed_index}"] = ["", index, ARRAY_MOVE]
                        pairs.append((index, left[removed_index], right[index]))
                        del removed[position]
                        break
                else:
                    result[str(index)] = [right[index]]

        for index, old_value, new_value in pairs:
            child = self._diff(old_value, new_value)
            if child is not None:
                result[str(index)] = child

        return result if len(result) > 1 else None

    @staticmethod
    def _match_items(left: list, right: list, index1: int, index2: int,
                     hashes_left: dict, hashes_right: dict) -> bool:
        value1, value2 = left[index1], right[index2]
        kind1, kind2 = _kind(value1), _kind(value2)
        if kind1 in _CONTAINERS and kind2 in _CONTAINERS:
            if index1 not in hashes_left:
                hashes_left[index1] = object_hash(value1)
            if index2 not in hashes_right:
                hashes_right[index2] = object_hash(value2)
            return hashes_left[index1] == hashes_right[index2]
        if kind1 != kind2 or kind1 in _CONTAINERS or kind2 in _CONTAINERS:
            return False
        return value1 == value2

    # ------------------------------------------------------------------
    # patch
    # ------------------------------------------------------------------

    def patch(self, base: Any, delta: Optional[Delta]) -> Any:
        """Apply *delta* to a copy of *base* and return the result.

        Any malformed delta raises PatchError, never a bare TypeError.
        """
        try:
            result = self._patch(copy.deepcopy(base), delta)
        except (TypeError, IndexError, KeyError, ValueError, AttributeError) as e:
            raise PatchError(f"Malformed delta: {e}") from e
        if result is _MISSING:
            raise PatchError("Delta deletes the whole document")
        return result

    def unpatch(self, result: Any, delta: Optional[Delta]) -> Any:
        """Undo *delta* on a copy of *result*, recovering the original base."""
        return self.patch(result, self.reverse(delta))

    def _patch(self, left: Any, delta: Optional[Delta]) -> Any:
        if delta is None:
            return left
        if isinstance(delta, dict):
            if _is_array_delta(delta):
                return self._patch_array(left, delta)
            return self._patch_object(left, delta)
        if not isinstance(delta, list):
            raise PatchError(f"Invalid delta node: {delta!r}")

        if len(delta) == 1:
            return copy.deepcopy(delta[0])
        if len(delta) == 2:
            return copy.deepcopy(delta[1])
        if _is_marker(delta, 0):
            return _MISSING
        if _is_marker(delta, TEXT_DIFF):
            return self._patch_text(left, delta[0])
        raise PatchError(f"Invalid delta node: {delta!r}")

    def _patch_object(self, left: Any, delta: dict) -> dict:
        if not isinstance(left, dict):
            raise PatchError(f"Object delta cannot be applied to {_describe(left)}")
        for key, child in delta.items():
            value = self._patch(left.get(key, _MISSING), child)
            if value is _MISSING:
                left.pop(key, None)
            else:
                left[key] = value
        return left

    def _patch_array(self, left: Any, delta: dict) -> list:
        if not isinstance(left, list):
            raise PatchError(f"Array delta cannot be applied to {_describe(left)}")

        to_remove: list[int] = []
        to_insert: list[tuple[int, Any]] = []
        to_modify: list[tuple[int, Any]] = []
        try:
            for key, child in delta.items():
                if key == "_t":
                    continue
                if key.startswith("_"):
                    if not (_is_marker(child, 0) or _is_marker(child, ARRAY_MOVE)):
                        raise PatchError("Only removals and moves can be applied at original array indices")
                    to_remove.append(int(key[1:]))
                elif isinstance(child, list) and len(child) == 1:
                    to_insert.append((int(key), copy.deepcopy(child[0])))
                else:
                    to_modify.append((int(key), child))
        except ValueError as e:
            raise PatchError(f"Invalid array delta index: {e}") from e

        # Remove from the back so earlier indices stay valid.
        for index in sorted(to_remove, reverse=True):
            if not 0 <= index < len(left):
                raise PatchError(f"Array removal index {index} out of range")
            removed = left.pop(index)
            instruction = delta[f"_{index}"]
            if instruction[2] == ARRAY_MOVE:
                to_insert.append((_move_target(instruction), removed))

        # Insert from the front, at final (new-array) positions.
        for index, value in sorted(to_insert, key=lambda item: item[0]):
            if not 0 <= index <= len(left):
                raise PatchError(f"Array insertion index {index} out of range")
            left.insert(index, value)

        for index, child in to_modify:
            if not 0 <= index < len(left):
                raise PatchError(f"Array modification index {index} out of range")
            value = self._patch(left[index], child)
            if value is _MISSING:
                raise PatchError(f"Array item {index} cannot be deleted in place")
            left[index] = value
        return left

    def _patch_text(self, left: Any, patch_text: str) -> str:
        if not isinstance(left, str):
            raise PatchError(f"Text delta cannot be applied to {_describe(left)}")
        try:
            patches = self._dmp.patch_fromText(patch_text)
        except ValueError as e:
            raise PatchError(f"Invalid text patch: {e}") from e
        text, applied = self._dmp.patch_apply(patches, left)
        if not all(applied):
            raise PatchError("Text patch did not apply cleanly")
        return text

    # ------------------------------------------------------------------
    # reverse
    # ------------------------------------------------------------------

    def reverse(self, delta: Optional[Delta]) -> Optional[Delta]:
        """Delta that undoes *delta*."""
        try:
            return self._reverse(delta)
        except (TypeError, IndexError, KeyError, ValueError, AttributeError) as e:
            raise PatchError(f"Malformed delta: {e}") from e

    def _reverse(self, delta: Optional[Delta]) -> Optional[Delta]:
        if delta is None:
            return None
        if isinstance(delta, dict):
            if _is_array_delta(delta):
                return self._reverse_array(delta)
            return {key: self._reverse(child) for key, child in delta.items()}
        if not isinstance(delta, list):
            raise PatchError(f"Invalid delta node: {delta!r}")

        if len(delta) == 1:
            return [delta[0], 0, 0]
        if len(delta) == 2:
            return [delta[1], delta[0]]
        if _is_marker(delta, 0):
            return [delta[0]]
        if _is_marker(delta, TEXT_DIFF):
            return [self._reverse_text(delta[0]), 0, TEXT_DIFF]
        raise PatchError(f"Invalid delta node: {delta!r}")

    def _reverse_array(self, delta: dict) -> dict:
        result: dict = {"_t": "a"}
        for name, child in delta.items():
            if name == "_t":
                continue
            if _is_marker(child, ARRAY_MOVE):
                result[f"_{_move_target(child)}"] = [child[0], int(name[1:]), ARRAY_MOVE]
                continue
            reversed_child = self._reverse(child)
            result[str(_reverse_array_index(delta, name, reversed_child))] = reversed_child
        return result

    def _reverse_text(self, patch_text: str) -> str:
        patches = self._dmp.patch_fromText(patch_text)
        for item in patches:
            item.diffs = [(-operation, data) for operation, data in item.diffs]
            item.start1, item.start2 = item.start2, item.start1
            item.length1, item.length2 = item.length2, item.length1
        return self._dmp.patch_toText(patches)


def _move_target(instruction: list) -> int:
    target = instruction[1]
    if isinstance(target, bool) or not isinstance(target, int) or target < 0:
        raise PatchError(f"Array move target must be an index, got {target!r}")
    return target


def _reverse_array_index(delta: dict, name: str, reversed_child: Any):
    """Key under which a reversed array child belongs."""
    if name.startswith("_"):
        return int(name[1:])
    if _is_marker(reversed_child, 0):
        return f"_{name}"

    index = int(name)
    reverse_index = index
    for delta_name, item in delta.items():
        if delta_name == "_t" or not isinstance(item, list):
            continue
        if _is_marker(item, ARRAY_MOVE):
            move_from, move_to = int(delta_name[1:]), _move_target(item)
            if move_to == index:
                return move_from
            if move_from <= reverse_index < move_to:
                reverse_index += 1
            elif move_to < reverse_index <= move_from:
                reverse_index -= 1
        elif _is_marker(item, 0):
            if int(delta_name[1:]) <= reverse_index:
                reverse_index += 1
        elif len(item) == 1 and int(delta_name) <= reverse_index:
            reverse_index -= 1
    return reverse_index


def _longest_common_subsequence(
    start1: int, end1: int, start2: int, end2: int,
    match: Callable[[int, int], bool],
) -> tuple[list[int], list[int]]:
    """Matched index pairs of the LCS of two array slices (absolute indices)."""
    rows, cols = end1 - start1, end2 - start2
    lengths = [[0] * (cols + 1) for _ in range(rows + 1)]
    for x in range(1, rows + 1):
        for y in range(1, cols + 1):
            if match(start1 + x - 1, start2 + y - 1):
                lengths[x][y] = lengths[x - 1][y - 1] + 1
            else:
                lengths[x][y] = max(lengths[x - 1][y], lengths[x][y - 1])

    indices1: list[int] = []
    indices2: list[int] = []
    x, y = rows, cols
    while x and y:
        if match(start1 + x - 1, start2 + y - 1):
            indices1.append(start1 + x - 1)
            indices2.append(start2 + y - 1)
            x -= 1
            y -= 1
        elif lengths[x][y - 1] > lengths[x - 1][y]:
            y -= 1
        else:
            x -= 1
    indices1.reverse()
    indices2.reverse()
    return indices1, indices2


def _describe(value: Any) -> str:
    if value is _MISSING:
        return "a missing value"
    return _kind(value)
