"""Error codes and exception types shared across the relay."""

from __future__ import annotations

from enum import Enum


class ErrorCode(str, Enum):
    """Request-scoped rejection reasons reported on the wire."""

    AUTH_FAILED = "AUTH_FAILED"
    NONCE_REPLAY = "NONCE_REPLAY"
    PAYLOAD_INVALID = "PAYLOAD_INVALID"
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    RATE_LIMITED = "RATE_LIMITED"
    DISCORD_FORWARD_FAILED = "DISCORD_FORWARD_FAILED"
    INVITE_INVALID = "INVITE_INVALID"
    INVITE_EXPIRED = "INVITE_EXPIRED"
    INVITE_ALREADY_USED = "INVITE_ALREADY_USED"

    @property
    def http_status(self) -> int:
        """Return the HTTP status code used when responding with this error."""
        return _HTTP_STATUS[self]


_HTTP_STATUS: dict[ErrorCode, int] = {
    ErrorCode.AUTH_FAILED: 401,
    ErrorCode.NONCE_REPLAY: 409,
    ErrorCode.PAYLOAD_INVALID: 422,
    ErrorCode.FILE_TOO_LARGE: 413,
    ErrorCode.RATE_LIMITED: 429,
    ErrorCode.DISCORD_FORWARD_FAILED: 502,
    ErrorCode.INVITE_INVALID: 400,
    ErrorCode.INVITE_EXPIRED: 410,
    ErrorCode.INVITE_ALREADY_USED: 409,
}


class RelayError(RuntimeError):
    """Base exception for relay-specific failures."""


class DuplicateNonceError(RelayError):
    """Raised when a (client_id, nonce) pair is already present in the ledger."""


class ForwardError(RelayError):
    """Raised when the downstream sink rejects or cannot receive an upload."""


class RateLimitExceededError(RelayError):
    """Raised when a caller exceeds its request allowance for the current window."""
