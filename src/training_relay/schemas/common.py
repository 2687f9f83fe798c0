"""Shared Pydantic schemas for common API elements."""
from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from training_relay.core.errors import ErrorCode


class ErrorResponse(BaseModel):
    """Body returned for every rejected request."""

    ok: Literal[False] = False
    error_code: ErrorCode = Field(..., alias="errorCode")
    request_id: str | None = Field(None, alias="requestId")

    model_config = ConfigDict(populate_by_name=True)

    def to_wire(self) -> dict[str, object]:
        """Serialise with camelCase keys, omitting an unset request id."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
