"""
Lead capture for the public signup page.

Records an interested email (plus arbitrary form data) as a PendingSignup
row without starting a verification.
"""

import logging
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import DependencyFailure, ValidationError
from models import PendingSignup
from utils.email_utils import normalize_email

logger = logging.getLogger(__name__)


def insert_pending_signup(db: Session, email: str, extra_data: Optional[Dict[str, Any]] = None) -> str:
    """
    Insert or update the lead row for ``email``, merging ``extra_data``.

    Returns:
        The normalized email (the row key)

    Raises:
        ValidationError: Missing or malformed email
        DependencyFailure: The store rejected the write
    """
    email = normalize_email(email)
    if not email:
        raise ValidationError("Email requerido")
    if "@" not in email:
        raise ValidationError("Email inválido")
    extra = extra_data if isinstance(extra_data, dict) else {}

    try:
        row = db.query(PendingSignup).filter(PendingSignup.email == email).first()
        if row is None:
            db.add(PendingSignup(email=email, extra_data=dict(extra)))
        else:
            # Reassign so the JSON column is flagged dirty
            row.extra_data = {**(row.extra_data or {}), **extra}
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"[pending signup] insert failed: {e}")
        raise DependencyFailure("No se pudo registrar el interés")

    return email
