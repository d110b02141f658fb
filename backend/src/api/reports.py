# pyright: reportMissingTypeStubs=false
"""
Report maintenance endpoints.

The cron endpoint is called by an external scheduler with the
``X-CRON-KEY`` header; the interactive one is for clinic admins.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from api.responses import ReportRefreshResponse
from auth.dependencies import UserContext, require_admin_role, verify_cron_key
from core.database import get_db
from services.report_service import refresh_materialized_reports

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/cron/refresh",
    summary="Refresh materialized reports (cron)",
    response_model=ReportRefreshResponse,
    dependencies=[Depends(verify_cron_key)],
)
def cron_refresh(db: Session = Depends(get_db)) -> ReportRefreshResponse:
    return ReportRefreshResponse(refreshed_at=refresh_materialized_reports(db))


@router.post("/refresh", summary="Refresh materialized reports", response_model=ReportRefreshResponse)
def refresh(
    current_user: UserContext = Depends(require_admin_role),
    db: Session = Depends(get_db),
) -> ReportRefreshResponse:
    """Clinic admins may trigger a refresh on demand."""
    logger.info(f"Report refresh requested by {current_user.user_id}")
    return ReportRefreshResponse(refreshed_at=refresh_materialized_reports(db))
