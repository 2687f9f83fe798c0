"""Invite codes and their redemption for client credentials.

Redemption consumes one use of an invite and issues a new credential in a
single transaction. The counter increment is a guarded update that only
applies while ``used_count < max_uses`` still holds, so concurrent
redemptions can never push an invite past its cap even when they all passed
the initial read.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from training_relay.core.errors import ErrorCode
from training_relay.core.security import hash_invite_code, random_token
from training_relay.db.time import utcnow
from training_relay.models import ClientCredential, InviteCode

CLIENT_ID_PREFIX = "relay-client-"
CLIENT_SECRET_PREFIX = "relay-secret-"
CLIENT_ID_BYTES = 12
CLIENT_SECRET_BYTES = 24
INVITE_CODE_BYTES = 12

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuedCredentials:
    """Credentials handed to the client after a successful redemption."""

    client_id: str
    client_secret: str


@dataclass(frozen=True)
class RedemptionFailure:
    """Typed reason a redemption was refused; nothing was written."""

    error_code: ErrorCode


RedemptionResult = IssuedCredentials | RedemptionFailure


def generate_invite_code() -> str:
    """Return a new random plaintext invite code."""
    return secrets.token_urlsafe(INVITE_CODE_BYTES)


def create_invite(
    db: Session,
    plain_code: str,
    *,
    max_uses: int = 1,
    expires_at: datetime | None = None,
    created_by: str | None = None,
) -> InviteCode:
    """Store an invite under the hash of `plain_code`.

    Args:
        db: Database session
        plain_code: Code given to the invitee; never persisted
        max_uses: How many redemptions the invite allows
        expires_at: Optional moment after which the invite is refused
        created_by: Operator label recorded for auditing

    Returns:
        The persisted invite

    Raises:
        ValueError: If `max_uses` is below one or the code is empty
    """
    if max_uses < 1:
        raise ValueError("max_uses must be at least 1")
    if not plain_code:
        raise ValueError("invite code must not be empty")

    invite = InviteCode(
        code_hash=hash_invite_code(plain_code),
        max_uses=max_uses,
        used_count=0,
        expires_at=expires_at,
        created_at=utcnow(),
        created_by=created_by,
    )
    db.add(invite)
    db.commit()
    return invite


def _consume_invite_use(db: Session, code_hash: str) -> int:
    """Increment the usage counter if the invite still has uses left.

    Returns:
        Number of rows updated; zero means the cap was reached concurrently.
    """
    result = db.execute(
        update(InviteCode)
        .where(InviteCode.code_hash == code_hash, InviteCode.used_count < InviteCode.max_uses)
        .values(used_count=InviteCode.used_count + 1)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def redeem_invite(
    db: Session,
    invite_code: str,
    install_id: str,
    *,
    now: datetime | None = None,
) -> RedemptionResult:
    """Exchange an invite code for a fresh client credential.

    Args:
        db: Database session
        invite_code: Plaintext invite code supplied by the client
        install_id: Client installation identifier, stored for information
        now: Current time; defaults to the wall clock

    Returns:
        IssuedCredentials on success, otherwise a RedemptionFailure carrying
        INVITE_INVALID, INVITE_EXPIRED or INVITE_ALREADY_USED
    """
    now = now or utcnow()
    code_hash = hash_invite_code(invite_code)

    invite = db.get(InviteCode, code_hash)
    if invite is None:
        return RedemptionFailure(ErrorCode.INVITE_INVALID)
    if invite.is_expired(now):
        return RedemptionFailure(ErrorCode.INVITE_EXPIRED)
    if invite.is_exhausted:
        return RedemptionFailure(ErrorCode.INVITE_ALREADY_USED)

    credentials = IssuedCredentials(
        client_id=random_token(CLIENT_ID_PREFIX, CLIENT_ID_BYTES),
        client_secret=random_token(CLIENT_SECRET_PREFIX, CLIENT_SECRET_BYTES),
    )

    try:
        if _consume_invite_use(db, code_hash) != 1:
            db.rollback()
            logger.info("Invite %s reached its use limit during redemption", code_hash[:12])
            return RedemptionFailure(ErrorCode.INVITE_ALREADY_USED)

        db.add(
            ClientCredential(
                client_id=credentials.client_id,
                client_secret=credentials.client_secret,
                install_id=install_id,
                active=True,
                created_at=now,
                revoked_at=None,
            )
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    logger.info("Issued client %s from invite %s", credentials.client_id, code_hash[:12])
    return credentials
