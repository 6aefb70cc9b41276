"""
Shared request dependencies.

Token verification happens upstream. By the time a request
reaches this service, the authenticated user id travels in the
X-User-Id header; here it is only turned into a Principal.
"""

import logging

from fastapi import Depends, Header
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from campaign_ops.authorization import AuthorizationGate, Principal
from campaign_ops.exceptions import LockTimeoutError
from campaign_ops.models.base import get_db, is_lock_timeout
from campaign_ops.models.user import User
from campaign_ops.permissions import PermissionModel, get_permission_model

logger = logging.getLogger(__name__)


def get_current_principal(
    x_user_id: int | None = Header(default=None),
    db: Session = Depends(get_db),
) -> Principal | None:
    """
    Resolve the caller, or None when there is no known user.

    On SQLite this lookup opens the request's write transaction,
    so it can be the statement that waits on a busy database.
    """
    if x_user_id is None:
        return None
    try:
        user = db.get(User, x_user_id)
    except OperationalError as exc:
        db.rollback()
        if is_lock_timeout(exc):
            logger.warning(
                "principal_lookup_lock_timeout", extra={"user_id": x_user_id}
            )
            raise LockTimeoutError() from exc
        raise
    if user is None:
        return None
    return Principal.from_user(user)


def get_authorization_gate(
    permission_model: PermissionModel = Depends(get_permission_model),
) -> AuthorizationGate:
    return AuthorizationGate(permission_model)
