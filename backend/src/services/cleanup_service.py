"""
Purge of expired verification state.

Removes pending signups and password-reset tokens whose expiry has passed.
Lead rows (no expiry) and invites (kept for audit) are never purged.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from models import PasswordReset, PendingSignup
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


class CleanupService:
    def __init__(self, db: Session):
        self.db = db

    def purge_expired_pending_signups(self, now: Optional[datetime] = None) -> int:
        """Delete pending signups whose code has expired. Returns the number deleted."""
        cutoff = now or utc_now()
        count = self.db.query(PendingSignup).filter(
            PendingSignup.expires_at.isnot(None),
            PendingSignup.expires_at <= cutoff,
        ).delete(synchronize_session=False)
        self.db.commit()
        return count

    def purge_expired_password_resets(self, now: Optional[datetime] = None) -> int:
        """Delete reset tokens past their expiry. Returns the number deleted."""
        cutoff = now or utc_now()
        count = self.db.query(PasswordReset).filter(
            PasswordReset.expires_at <= cutoff,
        ).delete(synchronize_session=False)
        self.db.commit()
        return count
