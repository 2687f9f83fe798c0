"""Schemas for signed training-data uploads."""
from __future__ import annotations

from collections.abc import Mapping
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

CLIENT_ID_HEADER = "x-scamscreener-client-id"
TIMESTAMP_HEADER = "x-scamscreener-timestamp"
NONCE_HEADER = "x-scamscreener-nonce"
SIGNATURE_HEADER = "x-scamscreener-signature"
SIGNATURE_VERSION_HEADER = "x-scamscreener-signature-version"

_UUID_PATTERN = (
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_SHA256_HEX_PATTERN = r"^[0-9a-fA-F]{64}$"


class SignedUploadHeaders(BaseModel):
    """Authentication headers attached to every upload.

    Values are kept exactly as sent, since they feed the canonical string.
    """

    client_id: str = Field(..., min_length=1, alias=CLIENT_ID_HEADER)
    timestamp: str = Field(..., pattern=r"^\d+$", alias=TIMESTAMP_HEADER)
    nonce: str = Field(..., pattern=_UUID_PATTERN, alias=NONCE_HEADER)
    signature: str = Field(..., pattern=_SHA256_HEX_PATTERN, alias=SIGNATURE_HEADER)
    signature_version: Literal["v1"] = Field(..., alias=SIGNATURE_VERSION_HEADER)

    model_config = ConfigDict(populate_by_name=True)

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> SignedUploadHeaders:
        """Validate a raw header map, matching names case-insensitively."""
        lowered = {name.lower(): value for name, value in headers.items()}
        return cls.model_validate(lowered)

    @property
    def timestamp_seconds(self) -> int:
        """Return the client-declared request time in unix seconds."""
        return int(self.timestamp)


class UploadMetadata(BaseModel):
    """Metadata part describing the uploaded training file."""

    schema_version: Literal["1"] = Field(..., alias="schemaVersion")
    mod_version: str = Field(..., min_length=1, alias="modVersion")
    ai_model_version: str = Field(..., min_length=1, alias="aiModelVersion")
    player_name: str = Field(..., min_length=1, alias="playerName")
    player_uuid: str = Field(..., min_length=1, alias="playerUuid")
    client_timestamp: str = Field(..., min_length=1, alias="clientTimestamp")
    file_sha256: str = Field(..., pattern=_SHA256_HEX_PATTERN, alias="fileSha256")
    file_size_bytes: int = Field(..., gt=0, alias="fileSizeBytes")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("file_sha256")
    @classmethod
    def _lowercase_hash(cls, value: str) -> str:
        return value.lower()


class UploadResponse(BaseModel):
    """Body returned once an upload has been forwarded."""

    ok: Literal[True] = True
    request_id: str = Field(..., alias="requestId")
    discord_message_id: str = Field("", alias="discordMessageId")
    verified_file_sha256: str = Field(..., alias="verifiedFileSha256")

    model_config = ConfigDict(populate_by_name=True)
