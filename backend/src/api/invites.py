# pyright: reportMissingTypeStubs=false
"""
Invite API endpoints.

Clinic admins invite staff; invited users accept with an existing account or
complete a first login that creates one.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from api.responses import InviteCompleteResponse, InviteCreateResponse, InviteResponse, OkResponse
from auth.dependencies import UserContext, get_current_user
from core.database import get_db
from core.exceptions import Forbidden
from services.invite_service import InviteDispatch, InviteService

logger = logging.getLogger(__name__)

router = APIRouter()


class InviteCreateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    email: Optional[str] = None
    clinic_id: Optional[int] = Field(default=None, alias="clinicId")
    inviter_id: Optional[str] = Field(default=None, alias="inviterId")
    role: Optional[str] = None


class InviteAcceptRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")


class InviteCompleteRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: Optional[str] = None
    password: Optional[str] = None
    first_name: Optional[str] = Field(default=None, alias="firstName")
    last_name: Optional[str] = Field(default=None, alias="lastName")


def to_create_response(dispatch: InviteDispatch) -> InviteCreateResponse:
    return InviteCreateResponse(
        token=dispatch.token,
        email_sent=dispatch.email_sent,
        invite_link=dispatch.invite_link,
        send_error=dispatch.send_error,
        clinic_id=dispatch.clinic_id,
    )


@router.post("/create", summary="Invite a user", response_model=InviteCreateResponse)
def create_invite(
    request: InviteCreateRequest,
    current_user: UserContext = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> InviteCreateResponse:
    """
    Create an invite and email the activation link.

    Clinic-scoped invites require admin rights on that clinic; invites with
    no clinic require a system admin.
    """
    if request.clinic_id is not None:
        if not current_user.is_clinic_admin(request.clinic_id):
            raise Forbidden("Solo los administradores de la clínica pueden invitar")
    elif not current_user.is_system_admin():
        raise Forbidden()

    dispatch = InviteService.create_member_invite(
        db,
        request.email or "",
        clinic_id=request.clinic_id,
        inviter_id=request.inviter_id or current_user.user_id,
        role=request.role,
    )
    return to_create_response(dispatch)


@router.post("/accept", summary="Accept an invite", response_model=OkResponse)
def accept_invite(request: InviteAcceptRequest, db: Session = Depends(get_db)) -> OkResponse:
    InviteService.accept_invite(db, request.token or "", request.user_id or "")
    return OkResponse()


@router.post("/complete", summary="Complete first login from an invite", response_model=InviteCompleteResponse)
def complete_invite(request: InviteCompleteRequest, db: Session = Depends(get_db)) -> InviteCompleteResponse:
    """Create the invited user's account with the chosen password."""
    user_id = InviteService.complete_invite(
        db,
        request.token or "",
        request.password or "",
        first_name=request.first_name,
        last_name=request.last_name,
    )
    return InviteCompleteResponse(user_id=user_id)


@router.get("/{token}", summary="Get an invite by token", response_model=InviteResponse)
def get_invite(token: str, db: Session = Depends(get_db)) -> InviteResponse:
    """Return the invite record. Expiry is left to the caller to check."""
    invite = InviteService.get_invite_by_token(db, token)
    return InviteResponse.model_validate(invite)
