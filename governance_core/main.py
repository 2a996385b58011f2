"""
Boardroom Governance Core: FastAPI Application.

This is the entry point for the application.
All routers are registered here.
"""

from fastapi import FastAPI

from governance_core.config import get_settings
from governance_core.logging_config import setup_logging
from governance_core.api.health import router as health_router
from governance_core.api.proposals import router as proposals_router
from governance_core.api.variance import router as variance_router

settings = get_settings()
setup_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Proposal governance, audit trail and variance tracking",
)

# Register routers
app.include_router(health_router)
app.include_router(proposals_router)
app.include_router(variance_router)
