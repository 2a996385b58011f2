"""
Health check endpoint.

Reports whether the service is up and whether the governance
tables are reachable.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from governance_core.config import get_settings
from governance_core.models.base import get_db
from governance_core.models.proposal import Proposal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])


@router.get("/health")
def health_check(db: Session = Depends(get_db)):
    """
    Return application health status including database connectivity.

    The probe reads at most one proposal id, so it fails if the schema
    is missing as well as when the database is unreachable.
    """
    try:
        db.execute(select(Proposal.id).limit(1)).first()
        db_status = "healthy"
    except SQLAlchemyError as e:
        logger.error("Health check database probe failed: %s", e)
        db.rollback()
        db_status = "unhealthy"

    return {
        "status": "healthy" if db_status == "healthy" else "degraded",
        "service": "boardroom-governance-core",
        "version": get_settings().APP_VERSION,
        "database": db_status,
    }
