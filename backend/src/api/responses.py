"""
Shared response models for API endpoints.

Every endpoint returns one of these fixed shapes. Errors are rendered by the
exception handlers in main.py as ``{"detail": str, "type": str}``.
"""

from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class OkResponse(BaseModel):
    """Generic success acknowledgement."""
    ok: bool = True


class RegisterResponse(BaseModel):
    """Response model for signup initiation."""
    ok: bool = True
    email: str


class LoginResponse(BaseModel):
    """Response model for password login."""
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class InitResponse(BaseModel):
    """Post-login routing decision."""
    redirect: str


class GoogleAuthUrlResponse(BaseModel):
    auth_url: str


class InviteCreateResponse(BaseModel):
    """Response model for invite creation.

    ``email_sent`` is False when delivery failed; ``invite_link`` lets the
    inviter relay the link manually in that case.
    """
    ok: bool = True
    token: str
    email_sent: bool
    invite_link: str
    send_error: Optional[str] = None
    clinic_id: Optional[int] = None


class InviteCompleteResponse(BaseModel):
    ok: bool = True
    user_id: str


class InviteResponse(BaseModel):
    """Invite record as stored."""
    model_config = ConfigDict(from_attributes=True)

    token: str
    email: str
    clinic_id: Optional[int] = None
    inviter_id: Optional[str] = None
    role: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    expires_at: datetime
    accepted: bool
    accepted_at: Optional[datetime] = None
    created_at: datetime


class ChangePasswordResponse(BaseModel):
    """Response model for password change, reporting which flags were cleared."""
    success: bool = True
    cleared: Dict[str, bool]


class PendingSignupResponse(BaseModel):
    ok: bool = True
    id: str


class ReportRefreshResponse(BaseModel):
    ok: bool = True
    refreshed_at: datetime


class ProfileSummaryResponse(BaseModel):
    """Signed-in user's profile summary."""
    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    roles: List[str] = []
    clinic_id: Optional[int] = None
    must_change_password: bool = False
    is_system_admin: bool = False
