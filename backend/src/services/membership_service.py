"""
Clinic membership and must-change-password flag helpers.

Memberships are unique per (clinic_id, user_id); writes go through an
INSERT ... ON CONFLICT DO UPDATE so repeated calls never duplicate a row.
"""

import logging
from typing import Any

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import DEFAULT_INVITE_ROLE
from models import Membership, Profile
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def _dialect_insert(db: Session) -> Any:
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Membership upsert not supported on {dialect}")


class MembershipService:
    """Service for clinic membership rows."""

    @staticmethod
    def upsert_membership(
        db: Session,
        clinic_id: int,
        user_id: str,
        role: str = DEFAULT_INVITE_ROLE,
    ) -> None:
        """
        Link a user to a clinic, updating the role if the link already exists.

        Core inserts bypass ORM events, so timestamps are set here.
        """
        now = utc_now()
        insert = _dialect_insert(db)
        stmt = insert(Membership).values(
            clinic_id=clinic_id,
            user_id=user_id,
            role=role or DEFAULT_INVITE_ROLE,
            is_active=True,
            must_change_password=False,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["clinic_id", "user_id"],
            set_={"role": stmt.excluded.role, "is_active": True, "updated_at": now},
        )
        try:
            db.execute(stmt)
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        logger.info(f"Upserted membership clinic={clinic_id} user={user_id} role={role}")

    @staticmethod
    def clear_profile_flag(db: Session, user_id: str) -> None:
        """Clear must_change_password on the user's profile."""
        try:
            db.query(Profile).filter(Profile.id == user_id).update(
                {Profile.must_change_password: False, Profile.updated_at: utc_now()},
                synchronize_session=False,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def clear_membership_flags(db: Session, user_id: str) -> None:
        """Clear must_change_password on every membership of the user."""
        try:
            db.query(Membership).filter(Membership.user_id == user_id).update(
                {Membership.must_change_password: False, Membership.updated_at: utc_now()},
                synchronize_session=False,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
