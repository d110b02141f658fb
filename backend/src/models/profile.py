"""
Profile model (1:1 with Identity).

Carries the user's display names, role tags, owning clinic and the
must_change_password flag.
"""

from typing import Optional
from datetime import datetime
from sqlalchemy import String, TIMESTAMP, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONType


class Profile(Base):
    """Per-identity profile."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(ForeignKey("identities.id"), primary_key=True)
    clinic_id: Mapped[Optional[int]] = mapped_column(ForeignKey("clinics.id"), nullable=True, index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, index=True)
    first_name: Mapped[str] = mapped_column(String(255), default="")
    last_name: Mapped[str] = mapped_column(String(255), default="")
    job_title: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    roles: Mapped[list[str]] = mapped_column(JSONType, default=list)  # e.g. ["admin"], ["doctor"], ["staff"]
    must_change_password: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<Profile(id={self.id}, clinic_id={self.clinic_id}, roles={self.roles})>"
