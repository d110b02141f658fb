# pyright: reportMissingTypeStubs=false
"""
Platform administration endpoints.

Only system admins (SYSTEM_ADMIN_EMAILS) may onboard new clinics.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from api.invites import to_create_response
from api.responses import InviteCreateResponse
from auth.dependencies import UserContext, require_system_admin
from core.database import get_db
from services.invite_service import InviteService

logger = logging.getLogger(__name__)

router = APIRouter()


class ClinicInviteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    clinic_name: Optional[str] = Field(default=None, alias="clinicName")
    admin_email: Optional[str] = Field(default=None, alias="adminEmail")


@router.post("/clinic-invites", summary="Create a clinic and invite its admin", response_model=InviteCreateResponse)
def create_clinic_invite(
    request: ClinicInviteRequest,
    current_user: UserContext = Depends(require_system_admin),
    db: Session = Depends(get_db),
) -> InviteCreateResponse:
    dispatch = InviteService.create_clinic_invite(
        db, request.clinic_name or "", request.admin_email or "", inviter_id=current_user.user_id
    )
    logger.info(f"System admin {current_user.email} invited {request.admin_email} to new clinic {dispatch.clinic_id}")
    return to_create_response(dispatch)
