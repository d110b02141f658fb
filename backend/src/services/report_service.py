"""
Materialized report refresh.

Report views live in the ``reports`` schema on PostgreSQL and are rebuilt by
the ``reports.refresh_all_materialized_views()`` procedure.
"""

import logging
from datetime import datetime

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from core.exceptions import DependencyFailure
from utils.datetime_utils import utc_now

logger = logging.getLogger(__name__)


def refresh_materialized_reports(db: Session) -> datetime:
    """
    Run the report refresh procedure.

    Returns:
        Time the refresh completed (UTC)

    Raises:
        DependencyFailure: The procedure failed
    """
    dialect = db.get_bind().dialect.name
    if dialect != "postgresql":
        # Materialized views only exist on PostgreSQL
        logger.info(f"Skipping report refresh on {dialect}")
        return utc_now()

    try:
        db.execute(text("SELECT reports.refresh_all_materialized_views()"))
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception(f"[report refresh] procedure failed: {e}")
        raise DependencyFailure("No se pudieron actualizar los reportes")

    refreshed_at = utc_now()
    logger.info("Materialized report views refreshed")
    return refreshed_at
