# pyright: reportMissingTypeStubs=false
"""
Public lead-capture endpoint.

Records an interested email before the user commits to a signup.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from api.responses import PendingSignupResponse
from core.database import get_db
from services.pending_signup_store import insert_pending_signup

logger = logging.getLogger(__name__)

router = APIRouter()


class PendingSignupRequest(BaseModel):
    email: Optional[str] = None
    extra_data: Optional[Dict[str, Any]] = None


@router.post("/pending", summary="Record a signup lead", response_model=PendingSignupResponse)
def create_pending_signup(request: PendingSignupRequest, db: Session = Depends(get_db)) -> PendingSignupResponse:
    key = insert_pending_signup(db, request.email or "", request.extra_data)
    return PendingSignupResponse(id=key)
