"""Invite redemption schemas."""
from __future__ import annotations

from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class RedeemRequest(BaseModel):
    """Exchange a one-time invite code for client credentials."""

    invite_code: str = Field(..., min_length=1, alias="inviteCode")
    install_id: UUID = Field(..., alias="installId", description="Client installation UUID")
    mod_version: str = Field(..., min_length=1, alias="modVersion")

    model_config = ConfigDict(populate_by_name=True)


class RedeemResponse(BaseModel):
    """Freshly issued credentials; the secret is never returned again."""

    ok: Literal[True] = True
    client_id: str = Field(..., alias="clientId")
    client_secret: str = Field(..., alias="clientSecret")
    signature_version: Literal["v1"] = Field("v1", alias="signatureVersion")

    model_config = ConfigDict(populate_by_name=True)
