"""
Password recovery workflow.

request_reset() never reveals whether an email belongs to an account: it
always completes, and every internal failure is logged and swallowed.
Reset tokens are single-use and expire after an hour.
"""

import logging
import secrets
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Dict, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import PASSWORD_MIN_LENGTH, PASSWORD_RESET_TOKEN_BYTES, PASSWORD_RESET_TTL_MINUTES
from core.exceptions import AuthFlowError, DependencyFailure, InvalidOrExpiredToken, ValidationError
from models import PasswordReset, Profile
from services import email_service
from services.identity_service import IdentityService
from services.membership_service import MembershipService
from utils.datetime_utils import is_past, utc_now
from utils.email_utils import normalize_email
from utils.side_effects import run_non_fatal

logger = logging.getLogger(__name__)

IDENTITY_SCAN_PAGE_SIZE = 100


@dataclass
class ResetRequestOutcome:
    """Internal diagnostics of a reset request; never returned to the caller."""
    token_created: bool = False
    email_sent: bool = False
    send_error: Optional[str] = None


@dataclass
class ClearedFlags:
    profile: bool = False
    memberships: bool = False

    def as_dict(self) -> Dict[str, bool]:
        return {"profile": self.profile, "memberships": self.memberships}


def build_reset_link(token: str) -> str:
    return f"{email_service.app_url()}/reset-password?token={token}"


class PasswordResetService:
    """Service for forgot/reset/change password operations."""

    @staticmethod
    def resolve_user_id(db: Session, email: str) -> Optional[str]:
        """Map an email to an identity id via profiles, then the identity listing."""
        profile = db.query(Profile).filter(func.lower(Profile.email) == email).first()
        if profile is not None:
            return profile.id

        page = 1
        while True:
            users = IdentityService.list_users(db, page=page, per_page=IDENTITY_SCAN_PAGE_SIZE)
            for user in users:
                if normalize_email(user.email) == email:
                    return user.id
            if len(users) < IDENTITY_SCAN_PAGE_SIZE:
                return None
            page += 1

    @staticmethod
    def _insert_token(db: Session, user_id: str, token: str) -> None:
        try:
            db.add(PasswordReset(
                token=token,
                user_id=user_id,
                expires_at=utc_now() + timedelta(minutes=PASSWORD_RESET_TTL_MINUTES),
            ))
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def _delete_user_tokens(db: Session, user_id: str) -> None:
        try:
            db.query(PasswordReset).filter(PasswordReset.user_id == user_id).delete()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def _delete_token(db: Session, token: str) -> None:
        try:
            db.query(PasswordReset).filter(PasswordReset.token == token).delete()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def _store_token(db: Session, user_id: str, token: str) -> bool:
        """Insert the token; on failure clear the user's old tokens and retry once."""
        try:
            PasswordResetService._insert_token(db, user_id, token)
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed inserting password reset token (first attempt): {e}")

        run_non_fatal("delete existing reset tokens", PasswordResetService._delete_user_tokens, db, user_id)
        try:
            PasswordResetService._insert_token(db, user_id, token)
            return True
        except SQLAlchemyError as e:
            logger.error(f"Failed inserting password reset token (retry) for user {user_id}: {e}")
            return False

    @staticmethod
    def request_reset(db: Session, email: str) -> ResetRequestOutcome:
        """
        Email a reset link if ``email`` belongs to an identity.

        Never raises; the outcome is for logging only.
        """
        outcome = ResetRequestOutcome()
        email = normalize_email(email)
        if not email:
            return outcome

        try:
            user_id = PasswordResetService.resolve_user_id(db, email)
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed resolving identity for password reset: {e}")
            return outcome
        if user_id is None:
            return outcome

        token = secrets.token_hex(PASSWORD_RESET_TOKEN_BYTES)
        if not PasswordResetService._store_token(db, user_id, token):
            return outcome
        outcome.token_created = True

        try:
            email_service.send_password_reset(email, build_reset_link(token))
            outcome.email_sent = True
        except AuthFlowError as e:
            outcome.send_error = e.detail
            logger.error(f"Failed sending password reset email: {e.detail}")

        logger.info(f"Password reset requested for user {user_id} (email_sent={outcome.email_sent})")
        return outcome

    @staticmethod
    def clear_must_change_flags(db: Session, user_id: str) -> ClearedFlags:
        """Clear must_change_password on profile and memberships, each best-effort."""
        return ClearedFlags(
            profile=run_non_fatal("clear profile must_change_password", MembershipService.clear_profile_flag, db, user_id),
            memberships=run_non_fatal("clear membership must_change_password", MembershipService.clear_membership_flags, db, user_id),
        )

    @staticmethod
    def redeem_reset(db: Session, token: str, new_password: str) -> str:
        """
        Set a new password using a reset token.

        Returns:
            The identity id whose password changed

        Raises:
            ValidationError: Missing fields or short password
            InvalidOrExpiredToken: Unknown or expired token
            DependencyFailure: Credential rotation failed (token kept for retry)
        """
        if not token or not new_password:
            raise ValidationError("Campos incompletos")
        if len(new_password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"La contraseña debe tener al menos {PASSWORD_MIN_LENGTH} caracteres")

        reset = db.query(PasswordReset).filter(PasswordReset.token == token).first()
        if reset is None:
            raise InvalidOrExpiredToken()
        if is_past(reset.expires_at):
            run_non_fatal("delete expired reset token", PasswordResetService._delete_token, db, token)
            raise InvalidOrExpiredToken("Token expirado")

        user_id = reset.user_id
        try:
            IdentityService.update_password(db, user_id, new_password)
        except AuthFlowError as e:
            logger.error(f"Failed updating password for user {user_id}: {e.detail}")
            raise DependencyFailure("No se pudo actualizar la contraseña")

        PasswordResetService.clear_must_change_flags(db, user_id)
        run_non_fatal("delete redeemed reset token", PasswordResetService._delete_token, db, token)
        logger.info(f"Password reset redeemed for user {user_id}")
        return user_id

    @staticmethod
    def change_password(db: Session, user_id: str, new_password: str, confirm_password: str) -> ClearedFlags:
        """
        Change the signed-in user's password.

        Raises:
            ValidationError: Missing fields, mismatch or short password
            DependencyFailure: Credential rotation failed
        """
        if not new_password or not confirm_password:
            raise ValidationError("Faltan campos requeridos")
        if new_password != confirm_password:
            raise ValidationError("Las contraseñas no coinciden")
        if len(new_password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"La contraseña debe tener al menos {PASSWORD_MIN_LENGTH} caracteres")

        try:
            IdentityService.update_password(db, user_id, new_password)
        except AuthFlowError as e:
            logger.error(f"Failed changing password for user {user_id}: {e.detail}")
            raise DependencyFailure("No se pudo actualizar la contraseña")

        cleared = PasswordResetService.clear_must_change_flags(db, user_id)
        logger.info(f"Password changed for user {user_id}")
        return cleared
