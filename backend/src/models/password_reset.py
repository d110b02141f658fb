"""
Password reset token model.

Tokens are single-use: a successful redemption deletes the row.
"""

from datetime import datetime
from sqlalchemy import String, TIMESTAMP, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class PasswordReset(Base):
    """One-time password reset token."""

    __tablename__ = "password_resets"

    token: Mapped[str] = mapped_column(String(128), primary_key=True)  # hex of 24 random bytes
    user_id: Mapped[str] = mapped_column(ForeignKey("identities.id"))
    expires_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    __table_args__ = (
        Index('idx_password_resets_user_id', 'user_id'),
    )

    def __repr__(self) -> str:
        return f"<PasswordReset(user_id={self.user_id}, expires_at={self.expires_at})>"
