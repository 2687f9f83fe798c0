"""Invite redemption endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request, status
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from training_relay.api.v1.dependencies import SessionDep, enforce_redeem_rate_limit
from training_relay.core.errors import ErrorCode
from training_relay.schemas.common import ErrorResponse
from training_relay.schemas.redeem import RedeemRequest, RedeemResponse
from training_relay.services.invites import RedemptionFailure, redeem_invite

router = APIRouter(prefix="/client", tags=["clients"])


def _error(error_code: ErrorCode) -> JSONResponse:
    return JSONResponse(
        status_code=error_code.http_status,
        content=ErrorResponse(error_code=error_code).to_wire(),
    )


@router.post("/redeem", dependencies=[Depends(enforce_redeem_rate_limit)])
async def redeem_client_invite(request: Request, db: SessionDep) -> JSONResponse:
    """Exchange an invite code for client credentials.

    Args:
        request: Incoming request carrying the JSON body
        db: Database session

    Returns:
        Issued credentials, or an error body with the matching status code
    """
    raw_body = await request.body()
    try:
        payload = RedeemRequest.model_validate_json(raw_body)
    except ValidationError:
        return _error(ErrorCode.INVITE_INVALID)

    result = await run_in_threadpool(
        redeem_invite,
        db,
        payload.invite_code,
        str(payload.install_id),
    )
    if isinstance(result, RedemptionFailure):
        return _error(result.error_code)

    response = RedeemResponse(client_id=result.client_id, client_secret=result.client_secret)
    return JSONResponse(
        status_code=status.HTTP_200_OK,
        content=response.model_dump(mode="json", by_alias=True),
    )
