"""Authentication and forwarding of signed training-data uploads.

Each attempt walks a fixed sequence of checks and ends either FORWARDED or
REJECTED, with exactly one audit row written at that point:

1. signed headers are well-formed
2. the declared timestamp is within the allowed clock skew
3. the client exists and is active (identity is known from here on)
4. the nonce has not been seen before (fast path)
5. the payload matches its declared size and SHA-256
6. the signature verifies over the verified hash and size
7. the nonce is committed; losing the insert race means replay
8. the payload is forwarded once to the downstream sink

The nonce commit is closed before forwarding starts, so a slow sink never
holds store locks. Store work runs in the threadpool, off the event loop.
A forward failure leaves the nonce consumed.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import datetime, timedelta

from fastapi.concurrency import run_in_threadpool
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from training_relay.core.errors import DuplicateNonceError, ErrorCode, ForwardError
from training_relay.core.security import (
    SignatureInput,
    build_canonical_string,
    sha256_hex,
    verify_signature,
)
from training_relay.core.settings import Settings, settings
from training_relay.db.time import utcnow
from training_relay.models import UploadAudit, UploadStatus
from training_relay.schemas.upload import SignedUploadHeaders, UploadMetadata
from training_relay.services.clients import get_active_client
from training_relay.services.forwarder import DiscordForwarder, ForwardedUpload
from training_relay.services.replay import NonceLedger, is_timestamp_within_skew

UPLOAD_METHOD = "POST"
UPLOAD_PATH = "/api/v1/training-uploads"

logger = logging.getLogger(__name__)


def new_request_id() -> str:
    """Return a fresh identifier for one upload attempt."""
    return f"req-{uuid.uuid4()}"


@dataclass(frozen=True)
class UploadAccepted:
    """Upload verified and delivered to the sink."""

    request_id: str
    verified_file_sha256: str
    external_message_id: str | None


@dataclass(frozen=True)
class UploadRejected:
    """Upload refused; `error_code` says why."""

    request_id: str
    error_code: ErrorCode


UploadOutcome = UploadAccepted | UploadRejected


class _UploadRejection(Exception):
    """Ends an attempt early with a specific rejection code."""

    def __init__(self, error_code: ErrorCode) -> None:
        super().__init__(error_code.value)
        self.error_code = error_code


@dataclass
class _Attempt:
    request_id: str
    ip: str | None
    client_id: str | None = None


@dataclass(frozen=True)
class _VerifiedPayload:
    metadata: UploadMetadata
    payload: bytes
    verified_file_sha256: str


class UploadPipeline:
    """Decides accept/reject for inbound uploads and forwards accepted ones."""

    def __init__(
        self,
        db: Session,
        forwarder: DiscordForwarder,
        *,
        config: Settings = settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._db = db
        self._forwarder = forwarder
        self._config = config
        self._clock = clock
        self._nonces = NonceLedger(db)

    async def authenticate_and_forward(
        self,
        headers: Mapping[str, str],
        metadata: str | bytes | Mapping[str, object] | None,
        payload: bytes | None,
        *,
        ip: str | None = None,
        request_id: str | None = None,
    ) -> UploadOutcome:
        """Run one upload attempt to completion.

        Args:
            headers: Raw request headers
            metadata: Metadata part as sent (JSON text or an already decoded mapping)
            payload: Uploaded file bytes, possibly one byte over the size cap
            ip: Peer address recorded in the audit trail
            request_id: Identifier to use instead of a generated one

        Returns:
            UploadAccepted or UploadRejected; storage failures propagate
        """
        attempt = _Attempt(request_id=request_id or new_request_id(), ip=ip)
        try:
            verified = await run_in_threadpool(
                self._authenticate, attempt, headers, metadata, payload
            )
            accepted = await self._forward(attempt, verified)
        except _UploadRejection as rejection:
            await run_in_threadpool(
                self._record_audit, attempt, UploadStatus.REJECTED, rejection.error_code
            )
            logger.warning(
                "Rejected upload %s from client %s: %s",
                attempt.request_id,
                attempt.client_id or "-",
                rejection.error_code.value,
            )
            return UploadRejected(request_id=attempt.request_id, error_code=rejection.error_code)

        await run_in_threadpool(self._record_audit, attempt, UploadStatus.FORWARDED, None)
        logger.info("Forwarded upload %s from client %s", attempt.request_id, attempt.client_id)
        return accepted

    def _authenticate(
        self,
        attempt: _Attempt,
        raw_headers: Mapping[str, str],
        metadata: str | bytes | Mapping[str, object] | None,
        payload: bytes | None,
    ) -> _VerifiedPayload:
        """Run the store-backed checks up to and including the nonce commit."""
        headers = self._validate_headers(raw_headers)
        now = self._clock()

        if not is_timestamp_within_skew(
            headers.timestamp_seconds,
            int(now.timestamp()),
            self._config.max_clock_skew_seconds,
        ):
            raise _UploadRejection(ErrorCode.AUTH_FAILED)

        client = get_active_client(self._db, headers.client_id)
        if client is None:
            raise _UploadRejection(ErrorCode.AUTH_FAILED)
        attempt.client_id = client.client_id
        client_secret = client.client_secret

        if self._nonces.has_seen(client.client_id, headers.nonce):
            raise _UploadRejection(ErrorCode.NONCE_REPLAY)

        verified = self._verify_payload(metadata, payload)

        canonical = build_canonical_string(
            SignatureInput(
                method=UPLOAD_METHOD,
                path=UPLOAD_PATH,
                client_id=client.client_id,
                timestamp=headers.timestamp,
                nonce=headers.nonce,
                file_sha256=verified.verified_file_sha256,
                file_size_bytes=len(verified.payload),
                schema_version=verified.metadata.schema_version,
            )
        )
        if not verify_signature(client_secret, canonical, headers.signature):
            raise _UploadRejection(ErrorCode.AUTH_FAILED)

        expires_at = now + timedelta(seconds=self._config.nonce_ttl_seconds)
        try:
            self._nonces.persist(client.client_id, headers.nonce, now, expires_at)
        except DuplicateNonceError as err:
            raise _UploadRejection(ErrorCode.NONCE_REPLAY) from err

        self._sweep_expired_nonces(now)
        return verified

    async def _forward(self, attempt: _Attempt, verified: _VerifiedPayload) -> UploadAccepted:
        try:
            result = await self._forwarder.forward(
                self._config.discord_webhook_url,
                ForwardedUpload(
                    request_id=attempt.request_id,
                    metadata=verified.metadata,
                    payload=verified.payload,
                    verified_file_sha256=verified.verified_file_sha256,
                ),
            )
        except ForwardError as err:
            logger.warning("Forwarding %s failed", attempt.request_id, exc_info=True)
            raise _UploadRejection(ErrorCode.DISCORD_FORWARD_FAILED) from err

        return UploadAccepted(
            request_id=attempt.request_id,
            verified_file_sha256=verified.verified_file_sha256,
            external_message_id=result.message_id,
        )

    @staticmethod
    def _validate_headers(raw_headers: Mapping[str, str]) -> SignedUploadHeaders:
        try:
            return SignedUploadHeaders.from_headers(raw_headers)
        except ValidationError as err:
            raise _UploadRejection(ErrorCode.AUTH_FAILED) from err

    def _verify_payload(
        self,
        metadata: str | bytes | Mapping[str, object] | None,
        payload: bytes | None,
    ) -> _VerifiedPayload:
        if payload is None:
            raise _UploadRejection(ErrorCode.PAYLOAD_INVALID)
        if len(payload) > self._config.max_upload_bytes:
            raise _UploadRejection(ErrorCode.FILE_TOO_LARGE)
        if metadata is None:
            raise _UploadRejection(ErrorCode.PAYLOAD_INVALID)

        try:
            if isinstance(metadata, Mapping):
                parsed = UploadMetadata.model_validate(metadata)
            else:
                parsed = UploadMetadata.model_validate_json(metadata)
        except ValidationError as err:
            raise _UploadRejection(ErrorCode.PAYLOAD_INVALID) from err

        if parsed.file_size_bytes != len(payload):
            raise _UploadRejection(ErrorCode.PAYLOAD_INVALID)

        digest = sha256_hex(payload)
        if digest != parsed.file_sha256:
            raise _UploadRejection(ErrorCode.PAYLOAD_INVALID)

        return _VerifiedPayload(metadata=parsed, payload=payload, verified_file_sha256=digest)

    def _sweep_expired_nonces(self, now: datetime) -> None:
        try:
            removed = self._nonces.cleanup_expired(now)
        except SQLAlchemyError:
            self._db.rollback()
            logger.warning("Failed nonce cleanup", exc_info=True)
            return
        if removed:
            logger.debug("Removed %d expired nonces", removed)

    def _record_audit(
        self,
        attempt: _Attempt,
        status: UploadStatus,
        error_code: ErrorCode | None,
    ) -> None:
        self._db.add(
            UploadAudit(
                request_id=attempt.request_id,
                client_id=attempt.client_id,
                status=status.value,
                error_code=error_code.value if error_code else None,
                ip=attempt.ip,
                created_at=utcnow(),
            )
        )
        self._db.commit()
