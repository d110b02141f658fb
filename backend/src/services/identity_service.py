"""
Administrative identity API.

Owns the ``identities`` table: creating, deleting and looking up login
identities and rotating their credentials. Workflows go through this
service instead of writing password hashes themselves.

Every mutating call commits its own single-row write.
"""

import base64
import hashlib
import logging
import uuid
from typing import Any, Dict, List, Optional

import bcrypt
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import Conflict, DependencyFailure, NotFound
from models import Identity
from utils.datetime_utils import utc_now
from utils.email_utils import normalize_email

logger = logging.getLogger(__name__)


def _prehash(password: str) -> bytes:
    # SHA-256 first so long passwords stay within bcrypt's 72-byte input limit
    return base64.b64encode(hashlib.sha256(password.encode('utf-8')).digest())


def hash_password(password: str) -> str:
    """Hash a password with bcrypt."""
    return bcrypt.hashpw(_prehash(password), bcrypt.gensalt()).decode('utf-8')


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    """Check a password against its bcrypt hash (False for OAuth-only identities)."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(_prehash(password), password_hash.encode('utf-8'))
    except ValueError:
        logger.warning("Stored password hash is malformed")
        return False


class IdentityService:
    """Service for identity management operations."""

    @staticmethod
    def create_user(
        db: Session,
        email: str,
        password: Optional[str] = None,
        full_name: Optional[str] = None,
        user_metadata: Optional[Dict[str, Any]] = None,
        email_confirm: bool = True,
    ) -> Identity:
        """
        Create a new identity.

        Args:
            db: Database session
            email: Login email (stored lower-case)
            password: Plaintext password; None for OAuth-only identities
            full_name: Display name
            user_metadata: Free-form metadata (e.g. ``{"roles": ["admin"]}``)
            email_confirm: Mark the email as already confirmed

        Raises:
            Conflict: An identity with this email already exists
            DependencyFailure: The store rejected the insert
        """
        normalized = normalize_email(email)
        if IdentityService.find_by_email(db, normalized) is not None:
            raise Conflict("Ya existe un usuario con este correo")

        identity = Identity(
            id=str(uuid.uuid4()),
            email=normalized,
            password_hash=hash_password(password) if password else None,
            full_name=full_name,
            user_metadata=dict(user_metadata or {}),
            email_confirmed_at=utc_now() if email_confirm else None,
        )
        try:
            db.add(identity)
            db.commit()
        except IntegrityError:
            # Concurrent create for the same email
            db.rollback()
            raise Conflict("Ya existe un usuario con este correo")
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to create identity: {e}")
            raise DependencyFailure("No se pudo crear el usuario")

        logger.info(f"Created identity {identity.id}")
        return identity

    @staticmethod
    def delete_user(db: Session, user_id: str) -> None:
        """Delete an identity. Missing identities are ignored."""
        try:
            deleted = db.query(Identity).filter(Identity.id == user_id).delete()
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        if deleted:
            logger.info(f"Deleted identity {user_id}")

    @staticmethod
    def update_password(db: Session, user_id: str, new_password: str) -> None:
        """
        Rotate an identity's credential.

        Raises:
            NotFound: No identity with this id
            DependencyFailure: The store rejected the update
        """
        identity = db.query(Identity).filter(Identity.id == user_id).first()
        if identity is None:
            raise NotFound("Usuario no encontrado")
        try:
            identity.password_hash = hash_password(new_password)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.exception(f"Failed to update password for identity {user_id}: {e}")
            raise DependencyFailure("No se pudo actualizar la contraseña")

    @staticmethod
    def get_user(db: Session, user_id: str) -> Optional[Identity]:
        return db.query(Identity).filter(Identity.id == user_id).first()

    @staticmethod
    def find_by_email(db: Session, email: str) -> Optional[Identity]:
        """Case-insensitive lookup by email."""
        normalized = normalize_email(email)
        if not normalized:
            return None
        return db.query(Identity).filter(func.lower(Identity.email) == normalized).first()

    @staticmethod
    def list_users(db: Session, page: int = 1, per_page: int = 100) -> List[Identity]:
        """Page through identities ordered by creation time."""
        offset = max(page - 1, 0) * per_page
        return (
            db.query(Identity)
            .order_by(Identity.created_at, Identity.id)
            .offset(offset)
            .limit(per_page)
            .all()
        )

    @staticmethod
    def authenticate(db: Session, email: str, password: str) -> Optional[Identity]:
        """Return the identity when the email/password pair matches, else None."""
        identity = IdentityService.find_by_email(db, email)
        if identity is None or not verify_password(password, identity.password_hash):
            return None
        return identity
