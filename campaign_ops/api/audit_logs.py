"""
Audit log API endpoints.
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import ValidationError
from sqlalchemy.orm import Session

from campaign_ops.api.dependencies import (
    get_authorization_gate,
    get_current_principal,
)
from campaign_ops.authorization import AuthorizationGate, Principal
from campaign_ops.config import get_settings
from campaign_ops.models.base import get_db
from campaign_ops.models.enums import AuditAction
from campaign_ops.permissions import Permission
from campaign_ops.schemas.audit import AuditLogFilter, AuditLogResponse
from campaign_ops.services.audit_service import AuditService

router = APIRouter(prefix="/audit-logs", tags=["Audit"])


@router.get("", response_model=list[AuditLogResponse])
def get_audit_logs(
    user_id: int | None = None,
    resource_kind: str | None = None,
    resource_id: str | None = None,
    action: AuditAction | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    limit: int | None = Query(default=None, gt=0, le=1000),
    db: Session = Depends(get_db),
    principal: Principal | None = Depends(get_current_principal),
    gate: AuthorizationGate = Depends(get_authorization_gate),
):
    """Audit entries matching every given filter, newest first."""
    gate.require(principal, Permission.AUDIT_VIEW)

    try:
        filters = AuditLogFilter(
            user_id=user_id,
            resource_kind=resource_kind,
            resource_id=resource_id,
            action=action,
            start_date=start_date,
            end_date=end_date,
            limit=limit or get_settings().AUDIT_QUERY_DEFAULT_LIMIT,
        )
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return AuditService(db).query(filters)
