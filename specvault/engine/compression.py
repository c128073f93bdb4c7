"""Payload codec: JSON serialization plus gzip compression.

Every stored ``diff`` column goes through here, in both directions.
"""

import gzip
import json
import zlib
from typing import Any, Optional

from ..exceptions import CorruptPayloadError

DEFAULT_COMPRESSION_LEVEL = 6


def compress(data: bytes, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """gzip-compress raw bytes."""
    return gzip.compress(data, compresslevel=level)


def decompress(data: bytes, version_id: Optional[int] = None) -> bytes:
    """Inflate gzip bytes. Raises CorruptPayloadError on a damaged payload."""
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as e:
        raise CorruptPayloadError(f"Cannot decompress payload: {e}", version_id=version_id) from e


def encode_payload(value: Any, level: int = DEFAULT_COMPRESSION_LEVEL) -> bytes:
    """Serialize a snapshot or delta to compact JSON and compress it."""
    serialized = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return compress(serialized.encode("utf-8"), level)


def decode_payload(data: bytes, version_id: Optional[int] = None) -> Any:
    """Inverse of encode_payload. Raises CorruptPayloadError on any failure."""
    raw = decompress(data, version_id)
    try:
        return json.loads(raw.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise CorruptPayloadError(f"Cannot decode payload: {e}", version_id=version_id) from e
