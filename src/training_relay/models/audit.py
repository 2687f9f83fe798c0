"""SQLAlchemy model for the upload audit trail."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from training_relay.db.session import Base
from training_relay.db.time import utcnow


class UploadStatus(str, Enum):
    """Terminal outcome of an upload attempt."""

    FORWARDED = "FORWARDED"
    REJECTED = "REJECTED"


class UploadAudit(Base):
    """Append-only record written once per upload attempt."""

    __tablename__ = "upload_audit"

    request_id: Mapped[str] = mapped_column(Text, primary_key=True)
    # Unset when the caller's identity was never established.
    client_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False)
    error_code: Mapped[str | None] = mapped_column(Text, nullable=True)
    ip: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
