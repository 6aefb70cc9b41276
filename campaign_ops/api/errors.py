"""
Translation from package errors to HTTP responses.
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from campaign_ops.exceptions import CampaignOpsError, ErrorKind

logger = logging.getLogger(__name__)

STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.EXPIRED: 400,
    ErrorKind.DEPLETED: 400,
    ErrorKind.INACTIVE: 400,
    ErrorKind.VALIDATION: 400,
    ErrorKind.LOCK_TIMEOUT: 503,
    ErrorKind.IMMUTABLE: 409,
    ErrorKind.INTERNAL: 500,
}

# Seconds a client should wait before retrying a busy coupon
RETRY_AFTER_SECONDS = "1"


async def campaign_ops_error_handler(
    request: Request, exc: CampaignOpsError
) -> JSONResponse:
    status_code = STATUS_BY_KIND.get(exc.kind, 500)
    headers = {"Retry-After": RETRY_AFTER_SECONDS} if exc.retryable else None
    if status_code >= 500 and not exc.retryable:
        logger.error(
            "request_failed",
            extra={"path": request.url.path, "code": exc.code},
        )
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "code": exc.code},
        headers=headers,
    )
