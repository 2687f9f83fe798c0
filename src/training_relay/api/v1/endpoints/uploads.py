"""Signed training-data upload endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from training_relay.api.v1.dependencies import (
    ForwarderDep,
    SessionDep,
    SettingsDep,
    client_ip,
    enforce_upload_rate_limit,
)
from training_relay.api.v1.upload_form import read_upload_form
from training_relay.schemas.common import ErrorResponse
from training_relay.schemas.upload import UploadResponse
from training_relay.services.uploads import UploadPipeline, UploadRejected

router = APIRouter(tags=["uploads"])


@router.post("/training-uploads", dependencies=[Depends(enforce_upload_rate_limit)])
async def create_training_upload(
    request: Request,
    db: SessionDep,
    forwarder: ForwarderDep,
    config: SettingsDep,
) -> JSONResponse:
    """Authenticate a signed upload and forward it downstream.

    Args:
        request: Incoming multipart request with signed headers
        db: Database session
        forwarder: Downstream sink client
        config: Active settings

    Returns:
        Forwarding receipt, or an error body carrying the request id
    """
    form = await read_upload_form(
        request.headers.get("content-type", ""),
        request.stream(),
        config.max_upload_bytes,
    )

    pipeline = UploadPipeline(db, forwarder, config=config)
    outcome = await pipeline.authenticate_and_forward(
        request.headers,
        form.metadata,
        form.payload,
        ip=client_ip(request),
    )

    if isinstance(outcome, UploadRejected):
        return JSONResponse(
            status_code=outcome.error_code.http_status,
            content=ErrorResponse(
                error_code=outcome.error_code,
                request_id=outcome.request_id,
            ).to_wire(),
        )

    response = UploadResponse(
        request_id=outcome.request_id,
        discord_message_id=outcome.external_message_id or "",
        verified_file_sha256=outcome.verified_file_sha256,
    )
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response.model_dump(mode="json", by_alias=True),
    )
