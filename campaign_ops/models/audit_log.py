"""
Audit log model.

Every committed mutation of a tracked resource leaves exactly
one row here, written in the same transaction as the mutation.
Rows are append-only: ORM listeners refuse updates and deletes.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy import String, DateTime, ForeignKey, JSON, event
from sqlalchemy.orm import Mapped, mapped_column, relationship

from campaign_ops.exceptions import ImmutabilityViolationError
from campaign_ops.models.base import Base, utcnow

logger = logging.getLogger(__name__)


class AuditLog(Base):
    """Immutable record of who changed what."""

    __tablename__ = "audit_logs"

    id: Mapped[int] = mapped_column(primary_key=True)
    user_id: Mapped[int | None] = mapped_column(
        ForeignKey("users.id"), nullable=True, index=True
    )
    resource_kind: Mapped[str] = mapped_column(
        String(50), nullable=False, index=True
    )
    resource_id: Mapped[str] = mapped_column(
        String(64), nullable=False, index=True
    )
    action: Mapped[str] = mapped_column(String(20), nullable=False, index=True)
    changes: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, nullable=False, default=utcnow, index=True
    )

    user: Mapped["User | None"] = relationship()

    @property
    def user_name(self) -> str | None:
        return self.user.name if self.user else None

    @property
    def user_email(self) -> str | None:
        return self.user.email if self.user else None

    def __repr__(self) -> str:
        return (
            f"<AuditLog {self.action} {self.resource_kind}:{self.resource_id} "
            f"by {self.user_id}>"
        )


def _reject(operation: str, target: AuditLog) -> None:
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": "AuditLog",
            "entity_id": str(target.id),
            "operation": operation,
        },
    )
    raise ImmutabilityViolationError(
        entity_type="AuditLog",
        entity_id=str(target.id),
        reason="Audit entries are append-only",
    )


@event.listens_for(AuditLog, "before_update")
def _block_audit_update(mapper, connection, target):
    _reject("UPDATE", target)


@event.listens_for(AuditLog, "before_delete")
def _block_audit_delete(mapper, connection, target):
    _reject("DELETE", target)
