"""
Signup verification state machine.

A clinic signup moves NONE -> PENDING -> (VERIFIED | EXPIRED | LOCKED).
Only PENDING is persisted, as a PendingSignup row holding the bcrypt hash of
a 6-digit code and the chosen password under the ephemeral cipher.
VERIFIED hands off to the provisioning orchestrator; EXPIRED and LOCKED
delete the row.

Lead rows written by ``insert_pending_signup`` carry no code or password and
are treated as if no signup were pending.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

import bcrypt
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.constants import (
    PASSWORD_MIN_LENGTH, SIGNUP_CODE_BCRYPT_ROUNDS, SIGNUP_CODE_MAX, SIGNUP_CODE_MIN,
    SIGNUP_CODE_TTL_MINUTES, SIGNUP_MAX_VERIFY_ATTEMPTS, SIGNUP_RESEND_INTERVAL_SECONDS,
)
from core.exceptions import (
    CodeExpired, Conflict, DependencyFailure, InvalidCode, NotFound, RateLimited,
    TooManyAttempts, ValidationError,
)
from models import PendingSignup
from services import email_service, ephemeral_cipher
from services.identity_service import IdentityService
from services.provisioning_service import ProvisionedAccount, ProvisioningService
from utils.datetime_utils import ensure_utc, is_past, utc_now
from utils.email_utils import is_valid_email, normalize_email
from utils.side_effects import run_non_fatal

logger = logging.getLogger(__name__)


def generate_code() -> str:
    """Uniformly random 6-digit code in [100000, 999999]."""
    return str(SIGNUP_CODE_MIN + secrets.randbelow(SIGNUP_CODE_MAX - SIGNUP_CODE_MIN + 1))


def hash_code(code: str) -> str:
    return bcrypt.hashpw(code.encode('utf-8'), bcrypt.gensalt(rounds=SIGNUP_CODE_BCRYPT_ROUNDS)).decode('utf-8')


def check_code(code: str, code_hash: Optional[str]) -> bool:
    """Constant-time comparison through bcrypt."""
    if not code_hash:
        return False
    try:
        return bcrypt.checkpw(code.encode('utf-8'), code_hash.encode('utf-8'))
    except ValueError:
        logger.warning("Stored signup code hash is malformed")
        return False


class SignupService:
    """Service for the email-code signup flow."""

    @staticmethod
    def get_pending(db: Session, email: str) -> Optional[PendingSignup]:
        """Return the started PendingSignup for ``email``, or None."""
        row = db.query(PendingSignup).filter(PendingSignup.email == normalize_email(email)).first()
        if row is None or not row.is_started:
            return None
        return row

    @staticmethod
    def _delete_pending(db: Session, email: str) -> None:
        try:
            db.query(PendingSignup).filter(PendingSignup.email == email).delete()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def _increment_attempts(db: Session, email: str) -> int:
        """Atomically bump the failed-attempt counter and return the new value."""
        stmt = (
            update(PendingSignup)
            .where(PendingSignup.email == email)
            .values(attempts=PendingSignup.attempts + 1)
            .returning(PendingSignup.attempts)
        )
        try:
            attempts = db.execute(stmt).scalar_one()
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to record verification attempt: {e}")
            raise DependencyFailure()
        return attempts

    @staticmethod
    def initiate(db: Session, email: str, password: str, clinic_name: str) -> str:
        """
        Start a signup: store the pending row and email a verification code.

        Returns:
            The normalized email the code was sent to

        Raises:
            ValidationError: Missing field, malformed email or short password
            Conflict: Email already registered or clinic name taken
            DependencyFailure: The pending row could not be stored
            EmailDeliveryFailed: The code could not be sent
        """
        email = normalize_email(email)
        clinic_name = (clinic_name or "").strip()
        if not email or not password or not clinic_name:
            raise ValidationError("Campos incompletos")
        if not is_valid_email(email):
            raise ValidationError("Email inválido")
        if len(password) < PASSWORD_MIN_LENGTH:
            raise ValidationError(f"La contraseña debe tener al menos {PASSWORD_MIN_LENGTH} caracteres")

        if IdentityService.find_by_email(db, email) is not None:
            raise Conflict("El correo ya está registrado")
        if ProvisioningService.clinic_name_taken(db, clinic_name):
            raise Conflict("El nombre de la clínica ya está en uso")

        code = generate_code()
        now = utc_now()
        try:
            previous = db.query(PendingSignup).filter(PendingSignup.email == email).first()
            extra_data = dict(previous.extra_data or {}) if previous is not None else None
            db.query(PendingSignup).filter(PendingSignup.email == email).delete()
            db.add(PendingSignup(
                email=email,
                clinic_name=clinic_name,
                encrypted_password=ephemeral_cipher.encrypt(password),
                code_hash=hash_code(code),
                attempts=0,
                expires_at=now + timedelta(minutes=SIGNUP_CODE_TTL_MINUTES),
                last_code_sent_at=now,
                extra_data=extra_data,
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to store pending signup: {e}")
            raise DependencyFailure("No se pudo iniciar el registro")

        # The user has no other way to obtain the code, so a failed send is fatal
        email_service.send_signup_code(email, code)
        logger.info(f"Signup initiated for {email}")
        return email

    @staticmethod
    def resend_code(db: Session, email: str) -> None:
        """
        Issue a fresh code for a pending signup.

        The previous code stops working because only the new hash is kept.
        Delivery is best-effort.

        Raises:
            ValidationError: Missing email
            NotFound: No pending signup for this email
            RateLimited: Last code was sent less than a minute ago
        """
        email = normalize_email(email)
        if not email:
            raise ValidationError("Email requerido")

        row = SignupService.get_pending(db, email)
        if row is None:
            raise NotFound("Registro no encontrado")

        now = utc_now()
        last_sent = ensure_utc(row.last_code_sent_at)
        if last_sent is not None and now - last_sent < timedelta(seconds=SIGNUP_RESEND_INTERVAL_SECONDS):
            raise RateLimited()

        code = generate_code()
        try:
            row.code_hash = hash_code(code)
            row.expires_at = now + timedelta(minutes=SIGNUP_CODE_TTL_MINUTES)
            row.last_code_sent_at = now
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to update pending signup: {e}")
            raise DependencyFailure()

        run_non_fatal("resend signup code", email_service.send_signup_code, email, code)
        logger.info(f"Signup code re-issued for {email}")

    @staticmethod
    def verify_code(db: Session, email: str, code: str) -> ProvisionedAccount:
        """
        Check a code and, on success, provision the account.

        Raises:
            ValidationError: Missing fields
            NotFound: No pending signup for this email
            CodeExpired: The code expired (row deleted)
            InvalidCode: Wrong code, attempts remain
            TooManyAttempts: Attempt ceiling reached (row deleted)
            DecryptError: The stored password could not be decrypted
            IdentityCreateFailed, ClinicCreateFailed, ProfileCreateFailed:
                Provisioning failed; the pending row is kept for a retry
        """
        email = normalize_email(email)
        code = (code or "").strip()
        if not email or not code:
            raise ValidationError("Campos incompletos")

        row = SignupService.get_pending(db, email)
        if row is None:
            raise NotFound("Registro no encontrado")

        if is_past(row.expires_at):
            SignupService._delete_pending(db, email)
            logger.info(f"Signup code expired for {email}")
            raise CodeExpired()

        if not check_code(code, row.code_hash):
            attempts = SignupService._increment_attempts(db, email)
            if attempts >= SIGNUP_MAX_VERIFY_ATTEMPTS:
                SignupService._delete_pending(db, email)
                logger.warning(f"Signup for {email} locked after {attempts} failed attempts")
                raise TooManyAttempts()
            raise InvalidCode()

        password = ephemeral_cipher.decrypt(row.encrypted_password or "")
        clinic_name = row.clinic_name or ""

        account = ProvisioningService.provision_signup_account(db, email, password, clinic_name)

        run_non_fatal("delete verified pending signup", SignupService._delete_pending, db, email)
        logger.info(f"Signup verified for {email}")
        return account
