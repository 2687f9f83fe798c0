"""Unit tests for the ORM models defined in training_relay.models.

These tests verify basic mapping correctness: table names, composite
primary keys, nullable audit identity, and the invite helpers.
"""

from datetime import UTC, datetime, timedelta

from training_relay.models import ClientCredential, InviteCode, NonceRecord, UploadAudit


def test_table_names():
    """Model classes expose expected __tablename__ values."""
    assert getattr(ClientCredential, "__tablename__") == "clients"
    assert getattr(InviteCode, "__tablename__") == "invite_codes"
    assert getattr(NonceRecord, "__tablename__") == "nonces"
    assert getattr(UploadAudit, "__tablename__") == "upload_audit"


def test_nonces_composite_primary_key():
    """Nonces table should use a composite primary key (client_id, nonce)."""
    table = NonceRecord.__table__
    pk_names = {c.name for c in table.primary_key}
    assert pk_names == {"client_id", "nonce"}
    assert "ix_nonces_expires_at" in {index.name for index in table.indexes}


def test_audit_client_id_is_nullable():
    assert UploadAudit.__table__.c.client_id.nullable is True
    assert UploadAudit.__table__.c.status.nullable is False


def test_invite_constraints_are_declared():
    names = {constraint.name for constraint in InviteCode.__table__.constraints}
    assert {"ck_invite_codes_max_uses", "ck_invite_codes_used_count"} <= names


def test_invite_expiry_and_exhaustion():
    now = datetime(2026, 1, 1, tzinfo=UTC)
    invite = InviteCode(code_hash="h", max_uses=2, used_count=1, expires_at=None)
    assert invite.is_expired(now) is False
    assert invite.is_exhausted is False

    invite.used_count = 2
    assert invite.is_exhausted is True

    # Naive values read back from SQLite are treated as UTC.
    invite.expires_at = (now - timedelta(seconds=1)).replace(tzinfo=None)
    assert invite.is_expired(now) is True


def test_client_repr_hides_secret():
    credential = ClientCredential(
        client_id="relay-client-1", client_secret="relay-secret-1", install_id="i", active=True
    )
    assert "relay-secret-1" not in repr(credential)
