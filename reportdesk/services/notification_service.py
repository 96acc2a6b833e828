"""
Notification service

Notifications are derived from a committed report transition and written
afterwards. Delivery is best-effort: a failed write is retried a bounded
number of times and then dropped with a warning. It never undoes the
transition that caused it.
"""
import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.orm import Session

from reportdesk.core.config import settings
from reportdesk.core.errors import NotFound
from reportdesk.models.notification import Notification, NotificationType
from reportdesk.models.report import Report, ReportStatus
from reportdesk.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingNotification:
    """A notification derived from a transition but not yet persisted"""
    user_id: int
    type: NotificationType
    title: str
    message: str
    report_id: int


def _week_label(report: Report) -> str:
    return f"week ending {report.week_ending.isoformat()}" if report.week_ending else f"report #{report.id}"


def derive_notifications(
    report: Report,
    new_status: ReportStatus,
    head_user_id: Optional[int],
    staff_name: Optional[str] = None,
) -> List[PendingNotification]:
    """
    Who hears about a transition

    SUBMITTED goes to the head of the report's department (if there is one);
    APPROVED and REJECTED go to the report's owner. Nothing else notifies.
    """
    label = _week_label(report)
    if new_status == ReportStatus.SUBMITTED:
        if head_user_id is None:
            return []
        who = staff_name or f"Staff #{report.staff_id}"
        return [PendingNotification(
            user_id=head_user_id,
            type=NotificationType.REPORT_SUBMITTED,
            title="New report submitted",
            message=f"{who} submitted a report for {label}.",
            report_id=report.id,
        )]
    if new_status == ReportStatus.APPROVED:
        return [PendingNotification(
            user_id=report.staff_id,
            type=NotificationType.REPORT_APPROVED,
            title="Report approved",
            message=f"Your report for {label} was approved.",
            report_id=report.id,
        )]
    if new_status == ReportStatus.REJECTED:
        return [PendingNotification(
            user_id=report.staff_id,
            type=NotificationType.REPORT_REJECTED,
            title="Report rejected",
            message=f"Your report for {label} was rejected.",
            report_id=report.id,
        )]
    return []


def _persist_notifications(db: Session, pending: List[PendingNotification]) -> None:
    created_at = now_utc()
    for item in pending:
        db.add(Notification(
            user_id=item.user_id,
            type=item.type,
            title=item.title,
            message=item.message,
            report_id=item.report_id,
            is_read=False,
            created_at=created_at,
        ))
    db.commit()


def dispatch(db: Session, pending: List[PendingNotification]) -> bool:
    """
    Persist notifications with bounded retries

    Returns:
        True if written, False if dropped after the last attempt
    """
    if not pending:
        return True

    attempts = settings.NOTIFICATION_MAX_ATTEMPTS
    backoff = settings.NOTIFICATION_RETRY_BACKOFF_SECONDS
    for attempt in range(1, attempts + 1):
        try:
            _persist_notifications(db, pending)
            return True
        except Exception as e:
            db.rollback()
            if attempt == attempts:
                logger.warning(
                    "Dropping %d notification(s) for report_id=%s after %d attempts: %s",
                    len(pending), pending[0].report_id, attempts, e,
                )
                return False
            delay = backoff * (2 ** (attempt - 1))
            logger.warning(
                "Notification write failed (attempt %d/%d), retrying in %.2fs: %s",
                attempt, attempts, delay, e,
            )
            if delay > 0:
                time.sleep(delay)
    return False


def dispatch_for_transition(
    db: Session,
    report: Report,
    new_status: ReportStatus,
    head_user_id: Optional[int],
    staff_name: Optional[str] = None,
) -> bool:
    """Derive and persist the notifications for a committed transition"""
    pending = derive_notifications(report, new_status, head_user_id, staff_name=staff_name)
    return dispatch(db, pending)


def list_notifications(
    db: Session,
    user_id: int,
    unread_only: bool = False,
    page: int = 1,
    limit: int = 20,
) -> Tuple[List[Notification], int, int, int]:
    """
    A user's notifications, newest first

    Returns:
        (items, total, unread_count, pages)
    """
    query = db.query(Notification).filter(Notification.user_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))

    total = query.count()
    items = (
        query.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    pages = math.ceil(total / limit) if limit else 0
    return items, total, unread_count(db, user_id), pages


def unread_count(db: Session, user_id: int) -> int:
    return (
        db.query(Notification)
        .filter(Notification.user_id == user_id, Notification.is_read.is_(False))
        .count()
    )


def _get_own_notification(db: Session, notification_id: int, user_id: int) -> Notification:
    # Someone else's notification looks exactly like a missing one
    notification = (
        db.query(Notification)
        .filter(Notification.id == notification_id, Notification.user_id == user_id)
        .first()
    )
    if not notification:
        raise NotFound(f"Notification with id {notification_id} not found")
    return notification


def mark_notification_read(db: Session, notification_id: int, user_id: int) -> Notification:
    notification = _get_own_notification(db, notification_id, user_id)
    if not notification.is_read:
        notification.is_read = True
        db.commit()
        db.refresh(notification)
    return notification


def mark_all_read(db: Session, user_id: int) -> int:
    """Mark every unread notification of user_id as read; returns how many changed"""
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    db.commit()
    return result.rowcount


def delete_notification(db: Session, notification_id: int, user_id: int) -> None:
    notification = _get_own_notification(db, notification_id, user_id)
    db.delete(notification)
    db.commit()
