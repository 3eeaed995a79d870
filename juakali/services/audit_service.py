# JUAKALI/backend/juakali/services/audit_service.py

import logging
from typing import Optional

from fastapi import Request
from sqlalchemy.orm import Session

from juakali.models import models

logger = logging.getLogger(__name__)


def client_ip(request: Request) -> str:
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return "unknown"


def log_admin_access(db: Session, request: Request, user: models.User, action: str, resource: str,
                     success: bool = True, failure_reason: Optional[str] = None) -> models.AdminAccessLog:
    """Appends one entry to the admin audit trail and commits it."""
    entry = models.AdminAccessLog(
        user_id=user.id,
        action=action,
        resource=resource,
        ip_address=client_ip(request),
        user_agent=request.headers.get("User-Agent"),
        success=success,
        failure_reason=failure_reason,
    )
    db.add(entry)
    db.commit()
    logger.info(f"🛡️ Admin {user.id} {action} {resource}")
    return entry
