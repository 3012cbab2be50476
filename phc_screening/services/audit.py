"""Audit logging of every applied screening change."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.orm import Session

from phc_screening.models.screening import AuditLog

logger = logging.getLogger(__name__)


def log_action(
    db: Session,
    *,
    actor: str,
    action: str,
    resource_type: str,
    resource_id: str,
    detail: dict[str, Any] | None = None,
) -> None:
    """Write an immutable audit log entry."""
    entry = AuditLog(
        actor=actor,
        action=action,
        resource_type=resource_type,
        resource_id=resource_id,
        detail=detail,
    )
    db.add(entry)
    db.flush()
    logger.info("AUDIT: %s %s %s/%s", actor, action, resource_type, resource_id)


def audit_trail(db: Session, resource_id: str) -> list[AuditLog]:
    """All entries for one resource, oldest first."""
    return (
        db.query(AuditLog)
        .filter(AuditLog.resource_id == resource_id)
        .order_by(AuditLog.timestamp, AuditLog.id)
        .all()
    )
