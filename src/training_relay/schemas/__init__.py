"""Pydantic schemas for request and response validation."""

from .common import ErrorResponse
from .redeem import RedeemRequest, RedeemResponse
from .upload import SignedUploadHeaders, UploadMetadata, UploadResponse

__all__ = [
    "ErrorResponse",
    "RedeemRequest", "RedeemResponse",
    "SignedUploadHeaders", "UploadMetadata", "UploadResponse",
]
