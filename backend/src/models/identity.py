"""
Identity model: the authentication record for a person.

Identities are owned by the administrative identity API
(services.identity_service); workflows never write password hashes directly.
"""

from typing import Any, Optional
from datetime import datetime
from sqlalchemy import String, TIMESTAMP
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, JSONType


class Identity(Base):
    """Login identity (email + credential)."""

    __tablename__ = "identities"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)  # UUID4
    email: Mapped[str] = mapped_column(String(255), unique=True, index=True)  # stored lower-case
    password_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)  # None for OAuth-only identities
    full_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_metadata: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    email_confirmed_at: Mapped[Optional[datetime]] = mapped_column(TIMESTAMP(timezone=True), nullable=True)

    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<Identity(id={self.id}, email='{self.email}')>"
