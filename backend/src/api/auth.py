# pyright: reportMissingTypeStubs=false
"""
Authentication API endpoints.

Handles password login, the email-code signup flow, password recovery,
post-social-login initialization and the Google account connection.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from api.responses import (
    GoogleAuthUrlResponse, InitResponse, LoginResponse, OkResponse, RegisterResponse,
)
from auth.dependencies import UserContext, get_current_user
from core import config
from core.database import get_db
from core.exceptions import Unauthorized, ValidationError
from models import Profile
from services.google_oauth import google_oauth_service
from services.identity_service import IdentityService
from services.jwt_service import jwt_service, TokenPayload
from services.password_reset_service import PasswordResetService
from services.provisioning_service import ProvisioningService
from services.signup_service import SignupService

logger = logging.getLogger(__name__)

router = APIRouter()


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class EmailRequest(BaseModel):
    email: Optional[str] = None


class RegisterRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    password: Optional[str] = None
    clinic_name: Optional[str] = Field(default=None, alias="clinicName")


class VerifyCodeRequest(BaseModel):
    email: Optional[str] = None
    code: Optional[str] = None


class ResetPasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    new_password: Optional[str] = Field(default=None, alias="newPassword")


@router.post("/login", summary="Log in with email and password", response_model=LoginResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)) -> LoginResponse:
    """Exchange credentials for a bearer access token."""
    if not request.email or not request.password:
        raise ValidationError("Campos incompletos")

    identity = IdentityService.authenticate(db, request.email, request.password)
    if identity is None:
        raise Unauthorized("Credenciales inválidas")

    profile = db.query(Profile).filter(Profile.id == identity.id).first()
    payload = TokenPayload(
        sub=identity.id,
        email=identity.email,
        roles=list(profile.roles or []) if profile else [],
        clinic_id=profile.clinic_id if profile else None,
        name=identity.full_name or "",
    )
    return LoginResponse(
        access_token=jwt_service.create_access_token(payload),
        expires_in=jwt_service.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.post("/forgot", summary="Request a password reset link", response_model=OkResponse)
def forgot_password(request: EmailRequest, db: Session = Depends(get_db)) -> OkResponse:
    """
    Email a reset link if the address belongs to an account.

    Always answers ``{"ok": true}`` so account existence is never revealed.
    """
    try:
        PasswordResetService.request_reset(db, request.email or "")
    except Exception as e:
        logger.exception(f"Forgot password error: {e}")
    return OkResponse()


@router.post("/register", summary="Start clinic signup", response_model=RegisterResponse)
def register(request: RegisterRequest, db: Session = Depends(get_db)) -> RegisterResponse:
    """Store the pending signup and email a verification code."""
    email = SignupService.initiate(db, request.email or "", request.password or "", request.clinic_name or "")
    return RegisterResponse(email=email)


@router.post("/resend-code", summary="Resend the signup verification code", response_model=OkResponse)
def resend_code(request: EmailRequest, db: Session = Depends(get_db)) -> OkResponse:
    SignupService.resend_code(db, request.email or "")
    return OkResponse()


@router.post("/verify-code", summary="Verify the signup code and create the account", response_model=OkResponse)
def verify_code(request: VerifyCodeRequest, db: Session = Depends(get_db)) -> OkResponse:
    SignupService.verify_code(db, request.email or "", request.code or "")
    return OkResponse()


@router.post("/reset", summary="Set a new password with a reset token", response_model=OkResponse)
def reset_password(request: ResetPasswordRequest, db: Session = Depends(get_db)) -> OkResponse:
    PasswordResetService.redeem_reset(db, request.token or "", request.new_password or "")
    return OkResponse()


@router.post("/init", summary="Initialize account after social login", response_model=InitResponse)
def init_after_login(
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> InitResponse:
    """Ensure the user has a clinic and tell the client where to go next."""
    identity = IdentityService.get_user(db, current_user.user_id)
    if identity is None:
        raise Unauthorized("Usuario no encontrado")
    redirect = ProvisioningService.init_after_social_login(db, identity)
    return InitResponse(redirect=redirect)


@router.get("/google/url", summary="Get the Google account connection URL", response_model=GoogleAuthUrlResponse)
async def google_auth_url(current_user: UserContext = Depends(get_current_user)) -> GoogleAuthUrlResponse:
    return GoogleAuthUrlResponse(auth_url=google_oauth_service.get_authorization_url(current_user.user_id))


@router.get("/google/callback", summary="Google OAuth callback")
async def google_callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> RedirectResponse:
    """
    Store the user's Google refresh token and send them back to settings.

    Always redirects; the ``google-auth`` query flag reports the outcome.
    """
    settings_url = f"{config.APP_BASE_URL.rstrip('/')}/settings"
    if error or not code or not state:
        if error:
            logger.warning(f"Google OAuth returned error: {error}")
        return RedirectResponse(url=f"{settings_url}?google-auth=error", status_code=302)

    try:
        await google_oauth_service.handle_oauth_callback(db, code, state)
    except Exception as e:
        logger.exception(f"Google OAuth callback failed: {e}")
        return RedirectResponse(url=f"{settings_url}?google-auth=error", status_code=302)

    return RedirectResponse(url=f"{settings_url}?google-auth=success", status_code=302)
