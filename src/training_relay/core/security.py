"""Request signing primitives built on HMAC-SHA256."""
from __future__ import annotations

import hashlib
import hmac
import re
import secrets
from dataclasses import dataclass

_HEX_PATTERN = re.compile(r"^[0-9a-fA-F]+$")


@dataclass(frozen=True)
class SignatureInput:
    """Fields covered by an upload signature, in canonical order."""

    method: str
    path: str
    client_id: str
    timestamp: str
    nonce: str
    file_sha256: str
    file_size_bytes: int
    schema_version: str


def build_canonical_string(fields: SignatureInput) -> str:
    """Join the signed fields with newlines in their fixed order.

    Args:
        fields: Request fields covered by the signature.

    Returns:
        The exact string the client HMACs, with the file size in base-10.
    """
    return "\n".join(
        [
            fields.method,
            fields.path,
            fields.client_id,
            fields.timestamp,
            fields.nonce,
            fields.file_sha256,
            str(fields.file_size_bytes),
            fields.schema_version,
        ]
    )


def hmac_sha256_hex(secret: str, canonical_string: str) -> str:
    """Return the lowercase hex HMAC-SHA256 of `canonical_string` under `secret`."""
    return hmac.new(
        secret.encode("utf-8"),
        canonical_string.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def timing_safe_equal_hex(expected_hex: str, provided_hex: str) -> bool:
    """Compare two hex digests in constant time.

    Malformed hex, odd lengths and length mismatches compare unequal rather
    than raising.
    """
    if not _HEX_PATTERN.fullmatch(expected_hex) or not _HEX_PATTERN.fullmatch(provided_hex):
        return False
    if len(expected_hex) != len(provided_hex) or len(expected_hex) % 2 != 0:
        return False

    expected = bytes.fromhex(expected_hex)
    provided = bytes.fromhex(provided_hex)
    return hmac.compare_digest(expected, provided)


def sign_request(secret: str, fields: SignatureInput) -> str:
    """Return the signature a client sends for `fields`."""
    return hmac_sha256_hex(secret, build_canonical_string(fields))


def verify_signature(secret: str, canonical_string: str, provided_signature_hex: str) -> bool:
    """Verify an HMAC signature over a canonical string.

    Args:
        secret: Shared client secret.
        canonical_string: Canonical request string rebuilt by the server.
        provided_signature_hex: Hex signature supplied by the client.

    Returns:
        True if the signature matches; False otherwise, including for malformed input.
    """
    expected = hmac_sha256_hex(secret, canonical_string)
    return timing_safe_equal_hex(expected, provided_signature_hex.lower())


def sha256_hex(payload: bytes) -> str:
    """Return the lowercase hex SHA-256 digest of `payload`."""
    return hashlib.sha256(payload).hexdigest()


def hash_invite_code(invite_code: str) -> str:
    """Return the one-way hash under which an invite code is stored."""
    return hashlib.sha256(invite_code.encode("utf-8")).hexdigest()


def random_token(prefix: str, nbytes: int) -> str:
    """Return `prefix` followed by `nbytes` of random data in hex."""
    return f"{prefix}{secrets.token_hex(nbytes)}"
