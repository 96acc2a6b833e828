"""
Audit logging service

Two write paths:
- log_audit: joins the caller's transaction. The caller commits the mutation and
  the entry together, so a committed state change always has its audit entry.
- log_audit_best_effort: for reads, logins and denied attempts. Runs in a
  savepoint and commits; a failure is logged and never reaches the caller.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from reportdesk.models.audit_log import AuditLog
from reportdesk.utils.datetime_utils import now_utc
from reportdesk.utils.json_serializer import sanitize_for_json

logger = logging.getLogger(__name__)


def log_audit(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    details: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
    created_at: Optional[datetime] = None,
) -> AuditLog:
    """
    Add an audit log entry to the current transaction (flushed, not committed)

    Args:
        db: Database session
        actor_id: ID of the user performing the action
        action: Action type (e.g., "REPORT_APPROVE", "USER_DELETE")
        entity_type: Type of entity (e.g., "report", "user", "department")
        entity_id: ID of the affected entity (optional)
        details: Human readable summary (optional)
        meta: Additional metadata as dictionary (optional)
        created_at: Timestamp to record; transitions pass their own so both match

    Returns:
        Created AuditLog instance
    """
    audit_log = AuditLog(
        actor_id=actor_id,
        action=action,
        details=details,
        entity_type=entity_type,
        entity_id=entity_id,
        meta_json=sanitize_for_json(meta) if meta is not None else None,
        created_at=created_at or now_utc(),
    )
    db.add(audit_log)
    db.flush()
    return audit_log


def log_audit_best_effort(
    db: Session,
    actor_id: Optional[int],
    action: str,
    entity_type: str,
    entity_id: Optional[int] = None,
    details: Optional[str] = None,
    meta: Optional[Dict[str, Any]] = None,
) -> Optional[AuditLog]:
    """
    Record a non-critical audit entry in its own savepoint and commit it.

    Returns None (after logging a warning) if the write fails.
    """
    try:
        with db.begin_nested():
            entry = log_audit(
                db,
                actor_id=actor_id,
                action=action,
                entity_type=entity_type,
                entity_id=entity_id,
                details=details,
                meta=meta,
            )
        db.commit()
        return entry
    except SQLAlchemyError as e:
        logger.warning(f"Failed to record audit entry action={action} entity={entity_type}:{entity_id}: {e}")
        db.rollback()
        return None


def list_audit_logs(
    db: Session,
    action: Optional[str] = None,
    actor_id: Optional[int] = None,
    entity_type: Optional[str] = None,
    entity_id: Optional[int] = None,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[AuditLog], int]:
    """List audit entries, newest first, with the total matching count"""
    query = db.query(AuditLog)

    if action:
        query = query.filter(AuditLog.action == action)
    if actor_id is not None:
        query = query.filter(AuditLog.actor_id == actor_id)
    if entity_type:
        query = query.filter(AuditLog.entity_type == entity_type)
    if entity_id is not None:
        query = query.filter(AuditLog.entity_id == entity_id)
    if date_from:
        query = query.filter(AuditLog.created_at >= date_from)
    if date_to:
        query = query.filter(AuditLog.created_at <= date_to)

    total = query.count()
    items = query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc()).offset(skip).limit(limit).all()
    return items, total
