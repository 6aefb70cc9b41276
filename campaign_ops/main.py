"""
Campaign Ops FastAPI application.

This is the entry point for the application.
All routers and error handlers are registered here.
"""

import uvicorn
from fastapi import FastAPI

from campaign_ops.config import get_settings
from campaign_ops.exceptions import CampaignOpsError
from campaign_ops.logging_config import configure_logging
from campaign_ops.api.errors import campaign_ops_error_handler
from campaign_ops.api.health import router as health_router
from campaign_ops.api.coupons import router as coupons_router
from campaign_ops.api.audit_logs import router as audit_logs_router
from campaign_ops.api.analytics import router as analytics_router

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Marketing operations backend: coupons, redemption and audit trail",
)

app.add_exception_handler(CampaignOpsError, campaign_ops_error_handler)

# Register routers
app.include_router(health_router)
app.include_router(coupons_router)
app.include_router(audit_logs_router)
app.include_router(analytics_router)


def run() -> None:
    """Serve the application with uvicorn on the configured address."""
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    run()
