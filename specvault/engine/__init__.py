"""Versioning engine: diff/patch, payload codec, chain reconstruction."""

from .diffpatch import DiffPatcher, object_hash
from .compression import compress, decompress, encode_payload, decode_payload
from .chain import reconstruct, ensure_deletable, find_dependent, ordered_chain
from .documents import parse_document, normalize
from .semver import parse_version, max_version, ensure_newer

__all__ = [
    "DiffPatcher",
    "object_hash",
    "compress",
    "decompress",
    "encode_payload",
    "decode_payload",
    "reconstruct",
    "ensure_deletable",
    "find_dependent",
    "ordered_chain",
    "parse_document",
    "normalize",
    "parse_version",
    "max_version",
    "ensure_newer",
]
