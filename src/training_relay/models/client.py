"""SQLAlchemy model for issued client credentials."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Text
from sqlalchemy.orm import Mapped, mapped_column

from training_relay.db.session import Base
from training_relay.db.time import utcnow


class ClientCredential(Base):
    """Pre-shared credentials issued to a mod installation by invite redemption."""

    __tablename__ = "clients"

    client_id: Mapped[str] = mapped_column(Text, primary_key=True)
    client_secret: Mapped[str] = mapped_column(Text, nullable=False)
    install_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def __repr__(self) -> str:
        # Never include the secret.
        return f"<ClientCredential(client_id={self.client_id!r}, active={self.active})>"
