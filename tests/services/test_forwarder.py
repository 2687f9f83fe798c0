import json

import httpx
import pytest

from training_relay.core.errors import ForwardError
from training_relay.schemas.upload import UploadMetadata
from training_relay.services.forwarder import ATTACHMENT_NAME, DiscordForwarder, ForwardedUpload

from tests.conftest import TRAINING_CSV, build_metadata

WEBHOOK_URL = "https://discord.test/api/webhooks/1/token"


def _upload() -> ForwardedUpload:
    metadata = UploadMetadata.model_validate(build_metadata(TRAINING_CSV))
    return ForwardedUpload(
        request_id="req-test",
        metadata=metadata,
        payload=TRAINING_CSV,
        verified_file_sha256=metadata.file_sha256,
    )


async def test_forward_posts_embed_and_attachment() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"id": "998877"})

    forwarder = DiscordForwarder(timeout_seconds=5, transport=httpx.MockTransport(handler))
    result = await forwarder.forward(WEBHOOK_URL, _upload())

    assert result.message_id == "998877"
    [request] = seen
    assert request.method == "POST"
    assert request.url.params["wait"] == "true"
    assert request.url.path == "/api/webhooks/1/token"

    body = request.content
    assert b'name="payload_json"' in body
    assert b'name="files[0]"' in body
    assert f'filename="{ATTACHMENT_NAME}"'.encode() in body
    assert TRAINING_CSV in body


async def test_forward_keeps_existing_query_string() -> None:
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(204)

    forwarder = DiscordForwarder(transport=httpx.MockTransport(handler))
    result = await forwarder.forward(f"{WEBHOOK_URL}?thread_id=42", _upload())

    assert result.message_id is None
    assert seen[0].url.params["thread_id"] == "42"
    assert seen[0].url.params["wait"] == "true"


async def test_embed_describes_verified_upload() -> None:
    captured: dict[str, object] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        marker = b'name="payload_json"\r\n\r\n'
        start = request.content.index(marker) + len(marker)
        end = request.content.index(b"\r\n--", start)
        captured.update(json.loads(request.content[start:end]))
        return httpx.Response(200, json={"id": "1"})

    upload = _upload()
    await DiscordForwarder(transport=httpx.MockTransport(handler)).forward(WEBHOOK_URL, upload)

    [embed] = captured["embeds"]
    values = {field["name"]: field["value"] for field in embed["fields"]}
    assert values["CSV SHA-256"] == upload.verified_file_sha256
    assert values["Mod Version"] == "1.0.0"
    assert embed["footer"]["text"] == "Request req-test"


async def test_non_numeric_message_id_is_ignored() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"id": 5}))
    result = await DiscordForwarder(transport=transport).forward(WEBHOOK_URL, _upload())
    assert result.message_id is None


@pytest.mark.parametrize("status_code", [400, 404, 429, 500, 503])
async def test_error_status_raises_forward_error(status_code: int) -> None:
    transport = httpx.MockTransport(
        lambda request: httpx.Response(status_code, text="webhook unavailable")
    )

    with pytest.raises(ForwardError, match=str(status_code)):
        await DiscordForwarder(transport=transport).forward(WEBHOOK_URL, _upload())


async def test_transport_error_raises_forward_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ForwardError):
        await DiscordForwarder(transport=httpx.MockTransport(handler)).forward(
            WEBHOOK_URL, _upload()
        )


async def test_malformed_webhook_url_raises_forward_error() -> None:
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"id": "1"}))

    with pytest.raises(ForwardError):
        await DiscordForwarder(transport=transport).forward(
            "https://discord.test:notaport/api/webhooks/1/token", _upload()
        )
