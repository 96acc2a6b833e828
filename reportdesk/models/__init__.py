"""
Database models
"""
from reportdesk.models.department import Department
from reportdesk.models.user import User, Role
from reportdesk.models.report import (
    Report,
    ReportStatus,
    REPORT_TRANSITIONS,
    TERMINAL_REPORT_STATUSES,
)
from reportdesk.models.comment import Comment
from reportdesk.models.notification import Notification, NotificationType
from reportdesk.models.audit_log import AuditLog

__all__ = [
    "Department",
    "User",
    "Role",
    "Report",
    "ReportStatus",
    "REPORT_TRANSITIONS",
    "TERMINAL_REPORT_STATUSES",
    "Comment",
    "Notification",
    "NotificationType",
    "AuditLog",
]
