# pyright: reportMissingTypeStubs=false
"""
Signed-in user endpoints.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from api.responses import ChangePasswordResponse, ProfileSummaryResponse
from auth.dependencies import UserContext, get_current_user
from core.database import get_db
from models import Profile
from services.password_reset_service import PasswordResetService

logger = logging.getLogger(__name__)

router = APIRouter()


class ChangePasswordRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    new_password: Optional[str] = Field(default=None, alias="newPassword")
    confirm_password: Optional[str] = Field(default=None, alias="confirmPassword")


@router.post("/change-password", summary="Change the current user's password", response_model=ChangePasswordResponse)
def change_password(
    request: ChangePasswordRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ChangePasswordResponse:
    """Rotate the password and clear any must-change-password flags."""
    cleared = PasswordResetService.change_password(
        db, current_user.user_id, request.new_password or "", request.confirm_password or ""
    )
    return ChangePasswordResponse(cleared=cleared.as_dict())


@router.get("/me", summary="Get the current user's profile", response_model=ProfileSummaryResponse)
def get_me(
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> ProfileSummaryResponse:
    profile = db.query(Profile).filter(Profile.id == current_user.user_id).first()
    return ProfileSummaryResponse(
        id=current_user.user_id,
        email=current_user.email,
        first_name=profile.first_name if profile else "",
        last_name=profile.last_name if profile else "",
        roles=current_user.roles,
        clinic_id=current_user.clinic_id,
        must_change_password=bool(profile.must_change_password) if profile else False,
        is_system_admin=current_user.is_system_admin(),
    )
