"""
Pydantic schemas for the audit trail.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field, field_validator, model_validator

from campaign_ops.models.base import to_naive_utc
from campaign_ops.models.enums import AuditAction


class AuditLogFilter(BaseModel):
    """
    Audit query filters. Every field is optional; the ones that
    are set are combined with AND. The date range is inclusive.
    """
    user_id: int | None = None
    resource_kind: str | None = None
    resource_id: str | None = None
    action: AuditAction | None = None
    start_date: datetime | None = None
    end_date: datetime | None = None
    limit: int | None = Field(default=None, gt=0, le=1000)

    @field_validator("start_date", "end_date")
    @classmethod
    def as_naive_utc(cls, v: datetime | None) -> datetime | None:
        # created_at is stored as naive UTC
        return to_naive_utc(v)

    @model_validator(mode="after")
    def range_must_be_ordered(self):
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        return self


class AuditLogResponse(BaseModel):
    id: int
    user_id: int | None
    user_name: str | None = None
    user_email: str | None = None
    resource_kind: str
    resource_id: str
    action: AuditAction
    changes: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}
