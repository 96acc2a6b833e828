"""
Report lifecycle service

    DRAFT -> SUBMITTED -> (UNDER_REVIEW) -> APPROVED | REJECTED

Every status change is a single conditional UPDATE guarded on the allowed
predecessor statuses. If no row matches, the caller either lost a race or
asked for an illegal move, and the current row decides which error to raise.
The audit entry for a transition is written in the same transaction, so the
change and its audit entry commit or roll back together. Notifications are
sent after commit and never undo the transition.
"""
import logging
from datetime import date, datetime
from typing import BinaryIO, Dict, List, Optional, Tuple

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from reportdesk.core.errors import (
    AlreadyFinalized,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationFailed,
)
from reportdesk.models.audit_log import AuditLog
from reportdesk.models.comment import Comment
from reportdesk.models.report import (
    Report,
    ReportStatus,
    REPORT_TRANSITIONS,
    TERMINAL_REPORT_STATUSES,
)
from reportdesk.models.user import User, Role
from reportdesk.services import notification_service
from reportdesk.services.audit_service import log_audit, log_audit_best_effort
from reportdesk.services.authorization import Action, Resource, authorize
from reportdesk.services.directory_service import head_of, headed_department_id
from reportdesk.services.file_store import FileStore
from reportdesk.utils.datetime_utils import now_utc
from reportdesk.utils.enums import enum_to_str

logger = logging.getLogger(__name__)

# Recorded against a report but not part of its history
SECURITY_ACTIONS = ("ACCESS_DENIED", "REPORT_VIEW")


def report_resource(report: Report) -> Resource:
    return Resource(kind="report", owner_id=report.staff_id, department_id=report.department_id)


def _authorize(db: Session, actor: User, action: Action, resource: Resource, entity_id: Optional[int] = None) -> None:
    """
    Gate check for report actions. A deny is recorded as ACCESS_DENIED
    (best-effort) and raised as Forbidden.
    """
    decision = authorize(
        actor.role,
        actor.id,
        action,
        resource,
        headed_department_id=headed_department_id(db, actor),
    )
    if decision.allowed:
        return

    log_audit_best_effort(
        db,
        actor_id=actor.id,
        action="ACCESS_DENIED",
        entity_type=resource.kind,
        entity_id=entity_id,
        details=decision.reason,
        meta={"attempted_action": action.value, "role": enum_to_str(actor.role)},
    )
    raise Forbidden(decision.reason or "Access denied")


def _load_report(db: Session, report_id: int) -> Report:
    report = db.get(Report, report_id)
    if not report:
        raise NotFound(f"Report with id {report_id} not found")
    return report


def _transition_failure(db: Session, report_id: int, target: ReportStatus):
    """Work out why a conditional update matched no row"""
    db.rollback()
    current = db.get(Report, report_id)
    if current is None:
        return NotFound(f"Report with id {report_id} not found")
    if current.status in TERMINAL_REPORT_STATUSES:
        return AlreadyFinalized(f"Report {report_id} is already {current.status.value}")
    return InvalidTransition(f"Cannot move report {report_id} from {current.status.value} to {target.value}")


def _apply_transition(
    db: Session,
    report_id: int,
    target: ReportStatus,
    action: str,
    now: datetime,
    **values,
) -> ReportStatus:
    """
    Move report_id to target if it is currently in one of target's predecessor
    statuses. Does not commit.

    Returns:
        The status the report was in before the move

    Raises:
        NotFound, AlreadyFinalized, InvalidTransition
    """
    predecessors = REPORT_TRANSITIONS[target]
    before = db.query(Report.status).filter(Report.id == report_id).scalar()
    result = db.execute(
        update(Report)
        .where(Report.id == report_id, Report.status.in_(predecessors))
        .values(status=target, updated_at=now, **values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise _transition_failure(db, report_id, target)

    before_status = before if before in predecessors else predecessors[0]
    logger.info(
        "report status transition: report_id=%s before=%s after=%s action=%s",
        report_id, before_status.value, target.value, action,
    )
    return before_status


def _commit_with_audit(db: Session, **audit_kwargs) -> AuditLog:
    """Write the audit entry into the pending transaction and commit both"""
    try:
        entry = log_audit(db, **audit_kwargs)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return entry


def _notify(db: Session, report: Report, new_status: ReportStatus) -> None:
    owner = db.get(User, report.staff_id)
    notification_service.dispatch_for_transition(
        db,
        report,
        new_status,
        head_user_id=head_of(db, report.department_id),
        staff_name=owner.name if owner else None,
    )


def _store_upload(
    file_store: FileStore,
    data: Optional[bytes],
    content_type: Optional[str],
    filename: Optional[str],
) -> Tuple[str, str, int]:
    if data is None:
        raise ValidationFailed("A PDF file is required", field="file")
    handle = file_store.store(data, content_type, filename)
    return handle, (filename or "report.pdf"), len(data)


def create_draft(
    db: Session,
    actor: User,
    file_store: FileStore,
    week_ending: Optional[date] = None,
    data: Optional[bytes] = None,
    content_type: Optional[str] = None,
    filename: Optional[str] = None,
) -> Report:
    """
    Create a DRAFT report owned by actor, optionally with its file

    Raises:
        Forbidden: actor may not create reports
        ValidationFailed: the file was rejected by the store
    """
    _authorize(db, actor, Action.REPORT_CREATE, Resource(kind="report", owner_id=actor.id))

    report = Report(staff_id=actor.id, week_ending=week_ending, status=ReportStatus.DRAFT, created_at=now_utc())
    if data is not None:
        report.file_path, report.file_name, report.file_size = _store_upload(file_store, data, content_type, filename)

    db.add(report)
    db.flush()
    _commit_with_audit(
        db,
        actor_id=actor.id,
        action="REPORT_DRAFT_CREATE",
        entity_type="report",
        entity_id=report.id,
        details="Report draft created",
        meta={"week_ending": week_ending, "file_name": report.file_name},
    )
    db.refresh(report)
    return report


def replace_draft_file(
    db: Session,
    report_id: int,
    actor: User,
    file_store: FileStore,
    data: Optional[bytes],
    content_type: Optional[str],
    filename: Optional[str] = None,
    week_ending: Optional[date] = None,
) -> Report:
    """Replace a DRAFT's file (and optionally its week). Only drafts are editable."""
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_EDIT, report_resource(report), entity_id=report.id)

    handle, name, size = _store_upload(file_store, data, content_type, filename)
    values = {"file_path": handle, "file_name": name, "file_size": size, "updated_at": now_utc()}
    if week_ending is not None:
        values["week_ending"] = week_ending

    result = db.execute(
        update(Report)
        .where(Report.id == report_id, Report.status == ReportStatus.DRAFT)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise _transition_failure(db, report_id, ReportStatus.DRAFT)

    _commit_with_audit(
        db,
        actor_id=actor.id,
        action="REPORT_FILE_UPDATE",
        entity_type="report",
        entity_id=report_id,
        details="Draft file replaced",
        meta={"file_name": name, "file_size": size},
    )
    db.refresh(report)
    return report


def _submit(db: Session, report: Report, actor: User, audit_meta: Optional[Dict] = None) -> Report:
    """DRAFT -> SUBMITTED for a report row already in the session"""
    if not report.file_path:
        raise ValidationFailed("Report has no file attached", field="file")
    if report.week_ending is None:
        raise ValidationFailed("week_ending is required", field="week_ending")

    owner = db.get(User, report.staff_id)
    department_id = owner.department_id if owner else None
    now = now_utc()
    _apply_transition(
        db,
        report.id,
        ReportStatus.SUBMITTED,
        "submit",
        now,
        department_id=department_id,
        created_at=now,
    )
    meta = {"week_ending": report.week_ending, "department_id": department_id}
    meta.update(audit_meta or {})
    _commit_with_audit(
        db,
        actor_id=actor.id,
        action="REPORT_SUBMIT",
        entity_type="report",
        entity_id=report.id,
        details=f"Report submitted: {report.file_name}",
        meta=meta,
        created_at=now,
    )
    db.refresh(report)
    _notify(db, report, ReportStatus.SUBMITTED)
    return report


def submit_report(
    db: Session,
    actor: User,
    file_store: FileStore,
    week_ending: Optional[date],
    data: Optional[bytes],
    content_type: Optional[str],
    filename: Optional[str] = None,
) -> Report:
    """
    Upload and submit in one step

    The file is durably stored before any row exists, so a failure after
    storing leaves an orphaned file and never a SUBMITTED row without bytes.
    """
    _authorize(db, actor, Action.REPORT_CREATE, Resource(kind="report", owner_id=actor.id))
    if week_ending is None:
        raise ValidationFailed("week_ending is required", field="week_ending")

    handle, name, size = _store_upload(file_store, data, content_type, filename)
    report = Report(
        staff_id=actor.id,
        week_ending=week_ending,
        file_path=handle,
        file_name=name,
        file_size=size,
        status=ReportStatus.DRAFT,
        created_at=now_utc(),
    )
    db.add(report)
    db.flush()
    return _submit(db, report, actor)


def submit_draft(db: Session, report_id: int, actor: User) -> Report:
    """Submit an existing DRAFT owned by actor"""
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_EDIT, report_resource(report), entity_id=report.id)
    return _submit(db, report, actor)


def resubmit_report(
    db: Session,
    report_id: int,
    actor: User,
    file_store: FileStore,
    data: Optional[bytes] = None,
    content_type: Optional[str] = None,
    filename: Optional[str] = None,
) -> Report:
    """
    Submit a new report for the same week as a REJECTED one

    The rejected report and its history are left as they are. Without a new
    file the rejected report's file is reused.

    Raises:
        InvalidTransition: the source report is not REJECTED
    """
    source = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_CREATE, Resource(kind="report", owner_id=source.staff_id), entity_id=source.id)
    if source.status != ReportStatus.REJECTED:
        raise InvalidTransition(f"Only REJECTED reports can be resubmitted (report {report_id} is {source.status.value})")

    if data is not None:
        handle, name, size = _store_upload(file_store, data, content_type, filename)
    else:
        handle, name, size = source.file_path, source.file_name, source.file_size

    report = Report(
        staff_id=source.staff_id,
        week_ending=source.week_ending,
        file_path=handle,
        file_name=name,
        file_size=size,
        status=ReportStatus.DRAFT,
        created_at=now_utc(),
    )
    db.add(report)
    db.flush()
    return _submit(db, report, actor, audit_meta={"resubmission_of": source.id})


def start_review(db: Session, report_id: int, actor: User) -> Report:
    """SUBMITTED -> UNDER_REVIEW"""
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_REVIEW, report_resource(report), entity_id=report.id)

    now = now_utc()
    before = _apply_transition(db, report_id, ReportStatus.UNDER_REVIEW, "review", now)
    _commit_with_audit(
        db,
        actor_id=actor.id,
        action="REPORT_REVIEW",
        entity_type="report",
        entity_id=report_id,
        details="Report review started",
        meta={"before": before, "after": ReportStatus.UNDER_REVIEW},
        created_at=now,
    )
    db.refresh(report)
    return report


def approve_report(db: Session, report_id: int, actor: User, remarks: Optional[str] = None) -> Report:
    """
    Approve a SUBMITTED or UNDER_REVIEW report

    Args:
        db: Database session
        report_id: Report to approve
        actor: HOD of the report's department, or ADMIN
        remarks: Optional remark, kept in the audit metadata

    Returns:
        The approved report (approved_at set)

    Raises:
        NotFound: no such report
        Forbidden: the gate denied the actor
        AlreadyFinalized: report is APPROVED or REJECTED already
        InvalidTransition: report is still a DRAFT
    """
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_APPROVE, report_resource(report), entity_id=report.id)

    now = now_utc()
    before = _apply_transition(db, report_id, ReportStatus.APPROVED, "approve", now, approved_at=now)
    _commit_with_audit(
        db,
        actor_id=actor.id,
        action="REPORT_APPROVE",
        entity_type="report",
        entity_id=report_id,
        details=f"Report approved: {report.file_name}",
        meta={"before": before, "after": ReportStatus.APPROVED, "staff_id": report.staff_id, "remarks": remarks},
        created_at=now,
    )
    db.refresh(report)
    _notify(db, report, ReportStatus.APPROVED)
    return report


def reject_report(db: Session, report_id: int, actor: User, remarks: Optional[str] = None) -> Report:
    """
    Reject a SUBMITTED or UNDER_REVIEW report

    Same rules and errors as approve_report; sets rejected_at.
    """
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_REJECT, report_resource(report), entity_id=report.id)

    now = now_utc()
    before = _apply_transition(db, report_id, ReportStatus.REJECTED, "reject", now, rejected_at=now)
    _commit_with_audit(
        db,
        actor_id=actor.id,
        action="REPORT_REJECT",
        entity_type="report",
        entity_id=report_id,
        details=f"Report rejected: {report.file_name}",
        meta={"before": before, "after": ReportStatus.REJECTED, "staff_id": report.staff_id, "remarks": remarks},
        created_at=now,
    )
    db.refresh(report)
    _notify(db, report, ReportStatus.REJECTED)
    return report


def _scoped_query(db: Session, actor: User):
    """Reports the actor may see: all for ADMIN/HR, own for STAFF, headed department for HOD"""
    query = db.query(Report)
    role = enum_to_str(actor.role)
    if role in (Role.ADMIN.value, Role.HR.value):
        return query
    if role == Role.HOD.value:
        dept_id = headed_department_id(db, actor)
        if dept_id is None:
            return query.filter(Report.id.is_(None))
        return query.filter(Report.department_id == dept_id)
    if role == Role.STAFF.value:
        return query.filter(Report.staff_id == actor.id)
    return query.filter(Report.id.is_(None))


def list_reports_for_actor(
    db: Session,
    actor: User,
    status: Optional[ReportStatus] = None,
    department_id: Optional[int] = None,
    staff_id: Optional[int] = None,
    week_from: Optional[date] = None,
    week_to: Optional[date] = None,
    skip: int = 0,
    limit: int = 50,
) -> Tuple[List[Report], int]:
    """
    List the reports visible to actor, newest first

    Filters narrow the actor's scope; they never widen it.

    Returns:
        (items, total)
    """
    query = _scoped_query(db, actor)

    if status is not None:
        query = query.filter(Report.status == status)
    if department_id is not None:
        query = query.filter(Report.department_id == department_id)
    if staff_id is not None:
        query = query.filter(Report.staff_id == staff_id)
    if week_from is not None:
        query = query.filter(Report.week_ending >= week_from)
    if week_to is not None:
        query = query.filter(Report.week_ending <= week_to)

    total = query.count()
    items = query.order_by(Report.created_at.desc(), Report.id.desc()).offset(skip).limit(limit).all()
    return items, total


def report_stats(db: Session, actor: User) -> Dict:
    """Counts of the actor's visible reports per status"""
    rows = (
        _scoped_query(db, actor)
        .with_entities(Report.status, func.count(Report.id))
        .group_by(Report.status)
        .all()
    )
    by_status = {s.value: 0 for s in ReportStatus}
    for status_value, count in rows:
        by_status[enum_to_str(status_value)] = count
    return {"total": sum(by_status.values()), "by_status": by_status}


def get_report(db: Session, report_id: int, actor: User) -> Report:
    """Read one report; the view is audited best-effort"""
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_READ, report_resource(report), entity_id=report.id)
    log_audit_best_effort(
        db,
        actor_id=actor.id,
        action="REPORT_VIEW",
        entity_type="report",
        entity_id=report.id,
    )
    return report


def open_report_file(db: Session, report_id: int, actor: User, file_store: FileStore) -> Tuple[BinaryIO, str]:
    """Open the report's PDF for reading; returns (stream, file_name)"""
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_READ, report_resource(report), entity_id=report.id)
    if not report.file_path:
        raise NotFound("Report has no file")
    return file_store.open(report.file_path), report.file_name or f"report-{report.id}.pdf"


def add_comment(db: Session, report_id: int, actor: User, content: str) -> Comment:
    """Append a comment to a report"""
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_COMMENT, report_resource(report), entity_id=report.id)

    content = (content or "").strip()
    if not content:
        raise ValidationFailed("Comment cannot be empty", field="content")

    now = now_utc()
    comment = Comment(report_id=report.id, author_id=actor.id, content=content, created_at=now)
    db.add(comment)
    db.flush()
    _commit_with_audit(
        db,
        actor_id=actor.id,
        action="COMMENT_CREATE",
        entity_type="report",
        entity_id=report.id,
        details="Comment added",
        meta={"comment_id": comment.id},
        created_at=now,
    )
    db.refresh(comment)
    return comment


def list_comments(db: Session, report_id: int, actor: User) -> List[Comment]:
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_READ, report_resource(report), entity_id=report.id)
    return (
        db.query(Comment)
        .filter(Comment.report_id == report.id)
        .order_by(Comment.created_at.asc(), Comment.id.asc())
        .all()
    )


def list_report_history(db: Session, report_id: int, actor: User) -> List[AuditLog]:
    """
    The report's audit trail, oldest first

    Views and denied attempts are security entries and stay in the ADMIN-only
    audit log; the per-report trail shows what changed the report.
    """
    report = _load_report(db, report_id)
    _authorize(db, actor, Action.REPORT_READ, report_resource(report), entity_id=report.id)
    return (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == "report", AuditLog.entity_id == report.id)
        .filter(AuditLog.action.notin_(SECURITY_ACTIONS))
        .order_by(AuditLog.created_at.asc(), AuditLog.id.asc())
        .all()
    )
