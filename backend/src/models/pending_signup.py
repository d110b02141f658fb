"""
Pending signup model for the email-code verification flow.

One row per email while a clinic signup awaits its 6-digit code. The row
holds the chosen password encrypted with the ephemeral cipher (never in
plaintext) and a bcrypt hash of the current code.
"""

from typing import Any, Optional
from datetime import datetime
from sqlalchemy import String, TIMESTAMP, Integer, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONType


class PendingSignup(Base):
    """Signup awaiting email verification."""

    __tablename__ = "pending_signups"

    email: Mapped[str] = mapped_column(String(255), primary_key=True)  # lower-case
    clinic_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    encrypted_password: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    code_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    attempts: Mapped[int] = mapped_column(Integer, default=0)
    expires_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    last_code_sent_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    # Lead data captured by insert_pending_signup before a verification starts
    extra_data: Mapped[Optional[dict[str, Any]]] = mapped_column(JSONType, nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    @property
    def is_started(self) -> bool:
        """True once a code has been issued (lead-only rows are not verifications)."""
        return bool(self.code_hash and self.encrypted_password)

    def __repr__(self) -> str:
        return f"<PendingSignup(email='{self.email}', attempts={self.attempts})>"
