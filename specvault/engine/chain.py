"""Chain reconstruction: materialize a version from its snapshot and diffs.

A path's records form one linear chain ordered by id. A full record holds the
whole document; every other record holds a delta against the record right
before it. Soft-deleted records stay in the chain.
"""

import logging
from typing import Any, Optional, Sequence

from ..exceptions import BrokenChainError, ChainIntegrityError, CorruptPayloadError, PatchError, VersionNotFoundError
from ..schemas.specification import SpecificationRecord
from .compression import decode_payload
from .diffpatch import DiffPatcher

logger = logging.getLogger(__name__)


def ordered_chain(records: Sequence[SpecificationRecord], path: str) -> list[SpecificationRecord]:
    """Records of *path*, in creation (id) order."""
    return sorted((r for r in records if r.path == path), key=lambda r: r.id)


def find_dependent(records: Sequence[SpecificationRecord], target_id: int) -> Optional[SpecificationRecord]:
    """The record whose delta is based on *target_id*, if any.

    Only the immediate successor can depend on a record directly; later
    diffs depend on it through that successor.
    """
    target = next((r for r in records if r.id == target_id), None)
    if target is None:
        return None
    chain = ordered_chain(records, target.path)
    position = chain.index(target)
    if position + 1 < len(chain) and not chain[position + 1].is_full:
        return chain[position + 1]
    return None


def ensure_deletable(records: Sequence[SpecificationRecord], target_id: int) -> None:
    """Raise ChainIntegrityError if removing *target_id* would break a later diff."""
    dependent = find_dependent(records, target_id)
    if dependent is not None:
        raise ChainIntegrityError(target_id, dependent.id)


def reconstruct(
    records: Sequence[SpecificationRecord],
    target: SpecificationRecord,
    patcher: Optional[DiffPatcher] = None,
) -> Any:
    """Return the document content as it was when *target* was saved.

    Walks back from *target* to the nearest full record, decodes it, then
    replays every later delta up to and including *target*.

    Raises:
        VersionNotFoundError: *target* is not among *records*.
        BrokenChainError: no full record precedes *target*.
        CorruptPayloadError: a payload cannot be decoded or applied.
    """
    patcher = patcher or DiffPatcher()
    chain = ordered_chain(records, target.path)
    ids = [r.id for r in chain]
    if target.id not in ids:
        raise VersionNotFoundError(target.id)
    position = ids.index(target.id)

    start = position
    while start >= 0 and not chain[start].is_full:
        start -= 1
    if start < 0:
        raise BrokenChainError(target.id)

    content = decode_payload(chain[start].diff, chain[start].id)
    for record in chain[start + 1:position + 1]:
        delta = decode_payload(record.diff, record.id)
        try:
            content = patcher.patch(content, delta)
        except PatchError as e:
            raise CorruptPayloadError(
                f"Cannot apply delta of version {record.id}: {e}", version_id=record.id
            ) from e

    logger.debug(
        "Reconstructed version",
        extra={"version_id": target.id, "path": target.path, "replayed": position - start},
    )
    return content
