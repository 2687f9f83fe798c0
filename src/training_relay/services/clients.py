"""Client credential lookups and operator actions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import update
from sqlalchemy.orm import Session

from training_relay.models import ClientCredential


def get_active_client(db: Session, client_id: str) -> ClientCredential | None:
    """Return the credential for `client_id` if it exists and is active."""
    client = db.get(ClientCredential, client_id)
    if client is None or client.active is not True:
        return None
    return client


def revoke_client(db: Session, client_id: str, *, now: datetime) -> bool:
    """Deactivate a client so its signatures are no longer accepted.

    Returns:
        True if an active client was revoked, False if none matched.
    """
    result = db.execute(
        update(ClientCredential)
        .where(ClientCredential.client_id == client_id, ClientCredential.active.is_(True))
        .values(active=False, revoked_at=now)
    )
    db.commit()
    return result.rowcount == 1
