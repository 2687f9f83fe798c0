"""Replay protection backed by the durable nonce ledger."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import delete, insert, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from training_relay.core.errors import DuplicateNonceError
from training_relay.models import NonceRecord


def is_timestamp_within_skew(timestamp_seconds: int, now_seconds: int, max_skew_seconds: int) -> bool:
    """Return True if the declared time is within `max_skew_seconds` of now, inclusive."""
    return abs(now_seconds - timestamp_seconds) <= max_skew_seconds


class NonceLedger:
    """Per-client set of consumed nonces.

    The primary key on (client_id, nonce) is the synchronisation point between
    concurrent requests: `has_seen` is only a fast path, and the insert made by
    `persist` decides which request wins.
    """

    def __init__(self, db: Session) -> None:
        self._db = db

    def has_seen(self, client_id: str, nonce: str) -> bool:
        """Return True if `nonce` has already been consumed by `client_id`."""
        row = self._db.execute(
            select(NonceRecord.nonce)
            .where(NonceRecord.client_id == client_id, NonceRecord.nonce == nonce)
            .limit(1)
        ).first()
        return row is not None

    def persist(self, client_id: str, nonce: str, seen_at: datetime, expires_at: datetime) -> None:
        """Record a nonce as consumed and commit.

        Raises:
            DuplicateNonceError: If the pair is already present, including when a
                concurrent request inserted it first.
        """
        try:
            self._db.execute(
                insert(NonceRecord).values(
                    client_id=client_id, nonce=nonce, seen_at=seen_at, expires_at=expires_at
                )
            )
            self._db.commit()
        except IntegrityError as err:
            self._db.rollback()
            raise DuplicateNonceError(f"nonce already used by {client_id}") from err

    def cleanup_expired(self, now: datetime) -> int:
        """Delete rows whose expiry is at or before `now` and return how many went."""
        result = self._db.execute(
            delete(NonceRecord)
            .where(NonceRecord.expires_at <= now)
            .execution_options(synchronize_session=False)
        )
        self._db.commit()
        return result.rowcount or 0
