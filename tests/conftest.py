# tests/conftest.py
from __future__ import annotations

import json
import os
import uuid
from collections.abc import Callable, Generator, Iterator
from datetime import datetime
from typing import Any
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

os.environ.setdefault("DISCORD_WEBHOOK_URL", "https://discord.test/api/webhooks/1/token")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from training_relay.api.v1.dependencies import get_forwarder_dep
from training_relay.core.security import SignatureInput, sha256_hex, sign_request
from training_relay.core.settings import Settings
from training_relay.db.session import Base, build_engine
from training_relay.db.session import get_db as app_get_session
from training_relay.db.time import utcnow
from training_relay.main import app as fastapi_app
from training_relay.models import ClientCredential
from training_relay.services.forwarder import DiscordForwarder, ForwardResult
from training_relay.services.rate_limit import get_redeem_limiter, get_upload_limiter
from training_relay.services.uploads import UPLOAD_METHOD, UPLOAD_PATH

TEST_CLIENT_ID = "relay-client-test"
TEST_CLIENT_SECRET = "relay-secret-test"
TEST_INSTALL_ID = "00000000-0000-0000-0000-000000000001"
TEST_MESSAGE_ID = "1234567890"
TRAINING_CSV = b"label,score\nscam,0.95\n"

_TEST_SETTINGS_INSTANCE = Settings()


@pytest.fixture()
def engine(tmp_path) -> Generator[Engine, None, None]:
    # A file database so concurrent sessions use genuinely separate connections.
    engine = build_engine(f"sqlite:///{tmp_path / 'relay.db'}")
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture()
def db_session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture(autouse=True)
def override_session_dependency(
    app: FastAPI, session_factory: sessionmaker[Session]
) -> Iterator[None]:
    def _get_session_override() -> Generator[Session, None, None]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[app_get_session] = _get_session_override
    try:
        yield
    finally:
        app.dependency_overrides.pop(app_get_session, None)


@pytest.fixture(autouse=True)
def reset_rate_limiters() -> Iterator[None]:
    get_upload_limiter().reset()
    get_redeem_limiter().reset()
    yield
    get_upload_limiter().reset()
    get_redeem_limiter().reset()


@pytest.fixture()
def fake_forwarder(app: FastAPI) -> Iterator[AsyncMock]:
    """Replace the Discord forwarder with a mock that reports success."""
    forwarder = AsyncMock(spec=DiscordForwarder)
    forwarder.forward.return_value = ForwardResult(message_id=TEST_MESSAGE_ID)
    app.dependency_overrides[get_forwarder_dep] = lambda: forwarder
    try:
        yield forwarder
    finally:
        app.dependency_overrides.pop(get_forwarder_dep, None)


@pytest.fixture()
def client(app: FastAPI, fake_forwarder: AsyncMock) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """Provide a Settings instance aligned with runtime configuration."""
    return _TEST_SETTINGS_INSTANCE


@pytest.fixture()
def relay_client(db_session: Session) -> ClientCredential:
    """Create and return an active client credential."""
    credential = ClientCredential(
        client_id=TEST_CLIENT_ID,
        client_secret=TEST_CLIENT_SECRET,
        install_id=TEST_INSTALL_ID,
        active=True,
        created_at=utcnow(),
    )
    db_session.add(credential)
    db_session.commit()
    return credential


def build_metadata(payload: bytes, **overrides: Any) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "schemaVersion": "1",
        "modVersion": "1.0.0",
        "aiModelVersion": "model-1",
        "playerName": "Player1",
        "playerUuid": str(uuid.uuid4()),
        "clientTimestamp": utcnow().isoformat(),
        "fileSha256": sha256_hex(payload),
        "fileSizeBytes": len(payload),
    }
    metadata.update(overrides)
    return metadata


def build_signed_headers(
    metadata: dict[str, Any],
    *,
    client_id: str = TEST_CLIENT_ID,
    client_secret: str = TEST_CLIENT_SECRET,
    nonce: str | None = None,
    timestamp: int | None = None,
) -> dict[str, str]:
    """Sign an upload the way a mod installation does."""
    nonce = nonce or str(uuid.uuid4())
    timestamp_text = str(timestamp if timestamp is not None else int(utcnow().timestamp()))
    signature = sign_request(
        client_secret,
        SignatureInput(
            method=UPLOAD_METHOD,
            path=UPLOAD_PATH,
            client_id=client_id,
            timestamp=timestamp_text,
            nonce=nonce,
            file_sha256=metadata["fileSha256"],
            file_size_bytes=metadata["fileSizeBytes"],
            schema_version=metadata["schemaVersion"],
        ),
    )
    return {
        "X-ScamScreener-Client-Id": client_id,
        "X-ScamScreener-Timestamp": timestamp_text,
        "X-ScamScreener-Nonce": nonce,
        "X-ScamScreener-Signature": signature,
        "X-ScamScreener-Signature-Version": "v1",
    }


@pytest.fixture()
def post_upload(client: TestClient) -> Callable[..., Any]:
    """Return a helper posting a multipart upload to the relay."""

    def _post(headers: dict[str, str], metadata: dict[str, Any] | str, payload: bytes) -> Any:
        metadata_text = metadata if isinstance(metadata, str) else json.dumps(metadata)
        return client.post(
            UPLOAD_PATH,
            headers=headers,
            data={"metadata": metadata_text},
            files={"training_file": ("training-data.csv", payload, "text/csv")},
        )

    return _post


def frozen_clock(moment: datetime) -> Callable[[], datetime]:
    return lambda: moment
