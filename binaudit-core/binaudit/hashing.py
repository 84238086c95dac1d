"""
Binary Audit Content Identity

All digests are SHA-256 with lowercase hexadecimal output.

- digest(payload): identity and integrity fingerprint of the exact bytes
- new_record_id(requester, timestamp): short record identifier

Record ids are derived from (timestamp, requester), not from the payload.
Two submissions by the same requester within the same clock tick produce
the same id, and the registry treats that as an overwrite.
"""

import hashlib
from typing import Union

from .util import constant_time_compare

RECORD_ID_LENGTH = 16
DIGEST_PREFIX_LENGTH = 16


def digest(payload: Union[bytes, bytearray, memoryview]) -> str:
    """
    Compute the content digest of a payload.

    Returns:
        64 lowercase hex characters
    """
    return hashlib.sha256(bytes(payload)).hexdigest()


def new_record_id(requester: str, timestamp: int) -> str:
    """
    Derive a record identifier.

    SHA-256 of "<timestamp>-<requester>", truncated to 16 hex characters.
    Collision-resistant in practice, not globally unique.
    """
    combined = f"{timestamp}-{requester}"
    return hashlib.sha256(combined.encode("utf-8")).hexdigest()[:RECORD_ID_LENGTH]


def digest_prefix(content_digest: str, length: int = DIGEST_PREFIX_LENGTH) -> str:
    """Truncated digest for display."""
    return content_digest[:length]


def verify_digest(declared: str, payload: Union[bytes, bytearray, memoryview]) -> bool:
    """
    Verify that a payload matches a declared digest.

    Verifiers MUST recompute from the payload; the declared value is
    compared case-insensitively.
    """
    if not isinstance(declared, str):
        return False
    return constant_time_compare(declared.strip().lower(), digest(payload))
