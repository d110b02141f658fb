# pyright: reportMissingTypeStubs=false
"""
Authentication and authorization dependencies for FastAPI.

Provides dependency injection functions for bearer-token authentication,
system-admin and clinic-admin checks, and the cron shared-secret check.
"""

import logging
import secrets
from typing import Optional
from fastapi import Depends, Header
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from core import config
from core.constants import CLINIC_ADMIN_ROLE
from core.database import get_db
from core.exceptions import Forbidden, NotFound, Unauthorized
from models import Membership, Profile
from services.identity_service import IdentityService
from services.jwt_service import jwt_service, TokenPayload

logger = logging.getLogger(__name__)


class UserContext:
    """Authenticated user context resolved from a JWT and the current records."""

    def __init__(
        self,
        user_id: str,
        email: str,
        roles: list[str],
        clinic_id: Optional[int],
        name: str,
        admin_clinic_ids: Optional[set[int]] = None,
        system_admin: bool = False,
        has_profile: bool = True,
    ):
        self.user_id = user_id
        self.email = email
        self.roles = roles  # Profile role tags: ["admin"], ["doctor"], ...
        self.clinic_id = clinic_id
        self.name = name
        self.admin_clinic_ids = admin_clinic_ids or set()
        self._system_admin = system_admin
        self.has_profile = has_profile

    def is_system_admin(self) -> bool:
        """Check if user is a platform administrator."""
        return self._system_admin

    def has_role(self, role: str) -> bool:
        """Check if user has a specific role."""
        return role in self.roles or self.is_system_admin()

    def is_clinic_admin(self, clinic_id: int) -> bool:
        """Check if user administers the given clinic."""
        return self.is_system_admin() or clinic_id in self.admin_clinic_ids

    def __repr__(self) -> str:
        return f"UserContext(user_id='{self.user_id}', email='{self.email}', roles={self.roles})"


# HTTP Bearer token security scheme
security = HTTPBearer(auto_error=False)


def get_token_payload(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[TokenPayload]:
    """Extract and validate JWT token payload."""
    if not credentials:
        return None
    return jwt_service.verify_token(credentials.credentials)


def get_current_user(
    payload: Optional[TokenPayload] = Depends(get_token_payload),
    db: Session = Depends(get_db)
) -> UserContext:
    """Get authenticated user context from JWT token."""
    if not payload:
        raise Unauthorized("Credenciales de autenticación no proporcionadas")

    identity = IdentityService.get_user(db, payload.sub)
    if identity is None:
        raise Unauthorized("Usuario no encontrado")

    profile = db.query(Profile).filter(Profile.id == identity.id).first()
    roles = list(profile.roles or []) if profile else []
    clinic_id = profile.clinic_id if profile else None

    admin_clinic_ids = {
        m.clinic_id for m in db.query(Membership).filter(
            Membership.user_id == identity.id,
            Membership.role == CLINIC_ADMIN_ROLE,
            Membership.is_active.is_(True),
        ).all()
    }
    if clinic_id is not None and CLINIC_ADMIN_ROLE in roles:
        admin_clinic_ids.add(clinic_id)

    return UserContext(
        user_id=identity.id,
        email=identity.email,
        roles=roles,
        clinic_id=clinic_id,
        name=identity.full_name or "",
        admin_clinic_ids=admin_clinic_ids,
        system_admin=identity.email.lower() in config.SYSTEM_ADMIN_EMAILS,
        has_profile=profile is not None,
    )


def require_system_admin(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require platform administrator access."""
    if not user.is_system_admin():
        raise Forbidden("Se requiere acceso de administrador del sistema")
    return user


def require_admin_role(user: UserContext = Depends(get_current_user)) -> UserContext:
    """Require the admin role on the user's profile."""
    if not user.has_profile:
        raise NotFound("Perfil no encontrado")
    if not user.has_role(CLINIC_ADMIN_ROLE):
        raise Forbidden()
    return user


def verify_cron_key(x_cron_key: Optional[str] = Header(None, alias="X-CRON-KEY")) -> None:
    """Require the X-CRON-KEY header to match CRON_SECRET."""
    expected = config.CRON_SECRET
    if not expected or not x_cron_key or not secrets.compare_digest(x_cron_key, expected):
        logger.warning("Rejected cron request with missing or invalid key")
        raise Unauthorized()
