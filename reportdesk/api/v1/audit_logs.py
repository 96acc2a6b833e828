"""
Audit log browsing (ADMIN-only)
"""
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from reportdesk.core.deps import get_db, get_current_user
from reportdesk.models.user import User
from reportdesk.schemas.report import AuditLogListResponse
from reportdesk.services.audit_service import list_audit_logs
from reportdesk.services.authorization import Action
from reportdesk.services.directory_service import check_access

router = APIRouter()


@router.get("", response_model=AuditLogListResponse)
async def list_audit_logs_endpoint(
    action: Optional[str] = Query(None),
    actor_id: Optional[int] = Query(None),
    entity_type: Optional[str] = Query(None),
    entity_id: Optional[int] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List audit entries, newest first"""
    check_access(db, current_user, Action.AUDIT_READ)
    items, total = list_audit_logs(
        db,
        action=action,
        actor_id=actor_id,
        entity_type=entity_type,
        entity_id=entity_id,
        date_from=date_from,
        date_to=date_to,
        skip=skip,
        limit=limit,
    )
    return AuditLogListResponse(items=items, total=total)
