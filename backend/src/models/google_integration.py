"""
Google integration model storing a user's OAuth refresh token.

The refresh token is encrypted with the Fernet-based EncryptionService.
"""

from datetime import datetime
from sqlalchemy import TIMESTAMP, Text, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class GoogleIntegration(Base):
    """Google Calendar credentials for a user (one row per user)."""

    __tablename__ = "google_integrations"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("identities.id"), unique=True)
    encrypted_refresh_token: Mapped[str] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    def __repr__(self) -> str:
        return f"<GoogleIntegration(user_id={self.user_id})>"
