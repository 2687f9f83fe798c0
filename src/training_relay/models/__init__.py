"""SQLAlchemy models for the training relay."""

from .audit import UploadAudit, UploadStatus
from .client import ClientCredential
from .invite import InviteCode
from .replay_protection import NonceRecord

__all__ = [
    "ClientCredential",
    "InviteCode",
    "NonceRecord",
    "UploadAudit", "UploadStatus",
]
