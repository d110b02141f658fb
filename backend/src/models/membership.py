"""
Membership model linking an identity to a clinic.

Independent of Profile.clinic_id so a person can belong to several clinics.
At most one row exists per (clinic_id, user_id).
"""

from datetime import datetime
from sqlalchemy import String, TIMESTAMP, Boolean, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class Membership(Base):
    """Clinic membership with a clinic-specific role."""

    __tablename__ = "members"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    clinic_id: Mapped[int] = mapped_column(ForeignKey("clinics.id"))
    user_id: Mapped[str] = mapped_column(ForeignKey("identities.id"))
    role: Mapped[str] = mapped_column(String(50), default="member")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        UniqueConstraint('clinic_id', 'user_id', name='uq_members_clinic_user'),
        Index('idx_members_user_id', 'user_id'),
    )

    def __repr__(self) -> str:
        return f"<Membership(clinic_id={self.clinic_id}, user_id={self.user_id}, role='{self.role}')>"
