"""Forwarding of verified uploads to the Discord webhook sink.

A single best-effort POST per accepted upload; failures are reported to the
caller and never retried here.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime

import httpx

from training_relay.core.errors import ForwardError
from training_relay.core.settings import settings
from training_relay.schemas.upload import UploadMetadata

logger = logging.getLogger(__name__)

EMBED_TITLE = "ScamScreener Upload"
ATTACHMENT_NAME = "training-data.csv"
MAX_ERROR_BODY_CHARS = 256


@dataclass(frozen=True)
class ForwardedUpload:
    """Verified upload handed to the sink."""

    request_id: str
    metadata: UploadMetadata
    payload: bytes
    verified_file_sha256: str


@dataclass(frozen=True)
class ForwardResult:
    """Outcome of a successful forward."""

    message_id: str | None


def _webhook_url_with_wait(webhook_url: str) -> str:
    separator = "&" if "?" in webhook_url else "?"
    return f"{webhook_url}{separator}wait=true"


def _build_embed(upload: ForwardedUpload) -> dict[str, object]:
    metadata = upload.metadata
    return {
        "title": EMBED_TITLE,
        "fields": [
            {"name": "Mod Version", "value": metadata.mod_version, "inline": True},
            {"name": "AI Model Version", "value": metadata.ai_model_version, "inline": True},
            {"name": "Player UUID", "value": metadata.player_uuid, "inline": False},
            {"name": "CSV SHA-256", "value": upload.verified_file_sha256, "inline": False},
        ],
        "footer": {"text": f"Request {upload.request_id}"},
        "timestamp": datetime.now(UTC).isoformat(),
    }


class DiscordForwarder:
    """Posts verified uploads to a Discord webhook."""

    def __init__(
        self,
        timeout_seconds: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds or settings.forward_timeout_seconds
        self._transport = transport

    async def forward(self, webhook_url: str, upload: ForwardedUpload) -> ForwardResult:
        """Send one upload to the webhook.

        Args:
            webhook_url: Discord webhook endpoint
            upload: Verified upload to deliver

        Returns:
            ForwardResult with the Discord message id when the response carries one

        Raises:
            ForwardError: If the webhook is unreachable or answers with a non-2xx status
        """
        payload_json = json.dumps({"embeds": [_build_embed(upload)]})
        files = {"files[0]": (ATTACHMENT_NAME, upload.payload, "text/csv")}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_seconds, transport=self._transport
            ) as client:
                response = await client.post(
                    _webhook_url_with_wait(webhook_url),
                    data={"payload_json": payload_json},
                    files=files,
                )
        except (httpx.HTTPError, httpx.InvalidURL) as err:
            raise ForwardError(f"Discord forward failed: {err}") from err

        if not response.is_success:
            raise ForwardError(
                f"Discord forward failed ({response.status_code}): "
                f"{response.text[:MAX_ERROR_BODY_CHARS]}"
            )

        try:
            body = response.json()
        except ValueError:
            body = None

        message_id = body.get("id") if isinstance(body, dict) else None
        if not isinstance(message_id, str):
            message_id = None

        logger.debug("Forwarded %s as Discord message %s", upload.request_id, message_id)
        return ForwardResult(message_id=message_id)


def get_forwarder() -> DiscordForwarder:
    """Return a forwarder configured from application settings."""
    return DiscordForwarder()
