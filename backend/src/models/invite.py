"""
Invite model for clinic-admin and member onboarding.

Invites are retained after acceptance for audit; they are never deleted.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import String, TIMESTAMP, Boolean, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base
from utils.datetime_utils import is_past


class Invite(Base):
    """Invitation token sent by email."""

    __tablename__ = "invites"

    token: Mapped[str] = mapped_column(String(64), primary_key=True)  # UUID4
    email: Mapped[str] = mapped_column(String(255))
    clinic_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clinics.id"), nullable=True)
    inviter_id: Mapped[Optional[str]] = mapped_column(ForeignKey("identities.id"), nullable=True)
    role: Mapped[str] = mapped_column(String(50), default="member")
    first_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    accepted: Mapped[bool] = mapped_column(Boolean, default=False)
    accepted_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_invites_clinic_id', 'clinic_id'),
        Index('idx_invites_email', 'email'),
    )

    @property
    def is_expired(self) -> bool:
        return is_past(self.expires_at)

    def __repr__(self) -> str:
        return f"<Invite(email='{self.email}', clinic_id={self.clinic_id}, accepted={self.accepted})>"
