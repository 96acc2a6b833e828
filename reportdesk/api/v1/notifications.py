"""
Notification endpoints (always scoped to the caller)
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from reportdesk.core.deps import get_db, get_current_user
from reportdesk.models.user import User
from reportdesk.schemas.notification import (
    MarkAllReadOut,
    NotificationListResponse,
    NotificationOut,
    UnreadCountOut,
)
from reportdesk.services import notification_service

router = APIRouter()


@router.get("", response_model=NotificationListResponse)
async def list_notifications_endpoint(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List the caller's notifications, newest first"""
    items, total, unread, pages = notification_service.list_notifications(
        db, current_user.id, unread_only=unread_only, page=page, limit=limit,
    )
    return NotificationListResponse(
        items=items, total=total, unread_count=unread, page=page, limit=limit, pages=pages,
    )


@router.get("/count", response_model=UnreadCountOut)
async def unread_count_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return UnreadCountOut(unread_count=notification_service.unread_count(db, current_user.id))


@router.put("/mark-all-read", response_model=MarkAllReadOut)
async def mark_all_read_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return MarkAllReadOut(updated=notification_service.mark_all_read(db, current_user.id))


@router.put("/{notification_id}/read", response_model=NotificationOut)
async def mark_read_endpoint(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return notification_service.mark_notification_read(db, notification_id, current_user.id)


@router.delete("/{notification_id}", status_code=204)
async def delete_notification_endpoint(
    notification_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    notification_service.delete_notification(db, notification_id, current_user.id)
