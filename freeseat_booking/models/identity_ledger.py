"""
Identity ledger: cached cumulative seat count per identity.

The authoritative count is always the sum of seats over the identity's
orders; this row is the lock point for quota checks and a cache of that sum.
"""

from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class IdentityLedger(Base):
    """Per-identity running total of granted seats."""

    __tablename__ = "identity_ledger"

    identity: Mapped[str] = mapped_column(String(320), primary_key=True)

    seats_reserved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False
    )

    __table_args__ = (
        CheckConstraint("seats_reserved >= 0", name="ck_identity_ledger_non_negative"),
    )

    def __repr__(self) -> str:
        return f"<IdentityLedger(identity={self.identity}, seats_reserved={self.seats_reserved})>"
