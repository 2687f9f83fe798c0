"""SQLAlchemy model for limited-use invite codes."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from training_relay.db.session import Base
from training_relay.db.time import as_utc, utcnow


class InviteCode(Base):
    """Invite redeemable up to `max_uses` times; only the code's hash is stored."""

    __tablename__ = "invite_codes"
    __table_args__ = (
        CheckConstraint("max_uses >= 1", name="ck_invite_codes_max_uses"),
        CheckConstraint(
            "used_count >= 0 AND used_count <= max_uses",
            name="ck_invite_codes_used_count",
        ),
    )

    code_hash: Mapped[str] = mapped_column(Text, primary_key=True)
    max_uses: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    used_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    created_by: Mapped[str | None] = mapped_column(Text, nullable=True)

    def is_expired(self, now: datetime) -> bool:
        """Return True if the invite has an expiry at or before `now`."""
        return self.expires_at is not None and as_utc(self.expires_at) <= now

    @property
    def is_exhausted(self) -> bool:
        """Return True once every use has been consumed."""
        return self.used_count >= self.max_uses
