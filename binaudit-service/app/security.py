"""
Security module for the Binary Audit service.

Provides input validation and sanitization for request fields.
"""

import base64
import binascii
import re
from typing import Any, Dict, List, Optional

from binaudit import verify_digest
from binaudit.hashing import RECORD_ID_LENGTH


# ============================================================
# Input Validation
# ============================================================

HEX_PATTERN = re.compile(r'^[a-fA-F0-9]+$')
BASE64_PATTERN = re.compile(r'^[A-Za-z0-9+/]*={0,2}$')
REQUESTER_PATTERN = re.compile(r'^[a-zA-Z0-9_.:@-]{1,128}$')
TARGET_ID_PATTERN = re.compile(r'^[a-zA-Z0-9_.:-]{1,128}$')

MAX_DESCRIPTION_LENGTH = 4000


class ValidationError(Exception):
    """Raised when input validation fails."""
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class PayloadTooLarge(Exception):
    """Raised when a decoded payload exceeds the configured limit."""
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"payload is {size} bytes; limit is {limit}")


def validate_hex(value: str, field_name: str, expected_length: Optional[int] = None) -> str:
    """
    Validate that a string is valid hexadecimal.

    Returns:
        The validated (lowercased) hex string

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    value = value.lower().strip()

    if not value:
        raise ValidationError(field_name, "cannot be empty")

    if not HEX_PATTERN.match(value):
        raise ValidationError(field_name, "must be valid hexadecimal")

    if expected_length and len(value) != expected_length:
        raise ValidationError(field_name, f"must be {expected_length} characters")

    return value


def validate_record_id(value: str) -> str:
    """Validate an audit record id (16 hex characters)."""
    return validate_hex(value, "audit_id", expected_length=RECORD_ID_LENGTH)


def validate_digest(value: str, field_name: str = "expected_digest") -> str:
    """Validate a content digest (64 hex characters)."""
    return validate_hex(value, field_name, expected_length=64)


def validate_requester(value: Optional[str]) -> str:
    """Validate the opaque requester identity from the X-Requester header."""
    if not value:
        raise ValidationError("X-Requester", "is required")
    if not REQUESTER_PATTERN.match(value):
        raise ValidationError("X-Requester", "invalid format")
    return value


def validate_target_id(value: Optional[str]) -> Optional[str]:
    """Validate an optional audited-target reference."""
    if value is None:
        return None
    if not TARGET_ID_PATTERN.match(value):
        raise ValidationError("target_id", "invalid format")
    return value


def validate_string_length(
    value: str,
    field_name: str,
    min_length: int = 1,
    max_length: int = 1000
) -> str:
    """
    Validate string length.

    Raises:
        ValidationError: If validation fails
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    if len(value) < min_length:
        raise ValidationError(field_name, f"must be at least {min_length} characters")

    if len(value) > max_length:
        raise ValidationError(field_name, f"must not exceed {max_length} characters")

    return value


def decode_payload(value: str, max_bytes: int, field_name: str = "payload_b64") -> bytes:
    """
    Decode a base64 payload and enforce the size limit.

    An empty string decodes to an empty payload.

    Raises:
        ValidationError: If the value is not valid base64
        PayloadTooLarge: If the decoded payload exceeds max_bytes
    """
    if not isinstance(value, str):
        raise ValidationError(field_name, "must be a string")

    value = value.strip()

    if not BASE64_PATTERN.match(value):
        raise ValidationError(field_name, "must be valid base64")

    # Reject before decoding when the encoded length alone is over the limit
    estimated = (len(value) // 4) * 3 - value.count("=")
    if estimated > max_bytes:
        raise PayloadTooLarge(estimated, max_bytes)

    try:
        payload = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError):
        raise ValidationError(field_name, "must be valid base64")

    if len(payload) > max_bytes:
        raise PayloadTooLarge(len(payload), max_bytes)

    return payload


def check_declared_digest(declared: Optional[str], payload: bytes) -> None:
    """
    Verify a client-declared digest against the received payload.

    Raises:
        ValidationError: If the declared digest is malformed or does not match
    """
    if declared is None:
        return
    declared = validate_digest(declared)
    if not verify_digest(declared, payload):
        raise ValidationError("expected_digest", "does not match payload")


# ============================================================
# Audit Logging Helpers
# ============================================================

def sanitize_for_logging(data: Dict[str, Any], sensitive_fields: List[str] = None) -> Dict[str, Any]:
    """
    Sanitize data for logging by masking payloads and other bulky fields.

    Returns:
        Sanitized copy of the data
    """
    if sensitive_fields is None:
        sensitive_fields = ["payload_b64", "narrative", "description"]

    result = {}
    for key, value in data.items():
        if key in sensitive_fields:
            if isinstance(value, str) and len(value) > 8:
                result[key] = f"{value[:4]}...({len(value)} chars)"
            else:
                result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = sanitize_for_logging(value, sensitive_fields)
        elif isinstance(value, list):
            result[key] = [
                sanitize_for_logging(item, sensitive_fields) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result
