"""
Tests for the report lifecycle service
"""
import pytest

from reportdesk.core.errors import (
    AlreadyFinalized,
    Forbidden,
    InvalidTransition,
    NotFound,
    ValidationFailed,
)
from reportdesk.models import AuditLog, Notification, NotificationType, Report, ReportStatus
from reportdesk.services import report_service
from reportdesk.utils.datetime_utils import ensure_utc
from reportdesk.tests.factories import WEEK, pdf_bytes


def audit_actions(db, report_id):
    rows = (
        db.query(AuditLog)
        .filter(AuditLog.entity_type == "report", AuditLog.entity_id == report_id)
        .order_by(AuditLog.id)
        .all()
    )
    return [row.action for row in rows]


@pytest.fixture
def submitted(db, file_store, hod_user, staff_user):
    return report_service.submit_report(
        db, staff_user, file_store, WEEK, pdf_bytes(), "application/pdf", "week42.pdf",
    )


def test_submit_report(db, file_store, submitted, staff_user, department, hod_user):
    assert submitted.status == ReportStatus.SUBMITTED
    assert submitted.staff_id == staff_user.id
    assert submitted.department_id == department.id
    assert submitted.file_size == 51200
    assert submitted.file_name == "week42.pdf"
    assert submitted.file_path.startswith("/uploads/")
    assert file_store.exists(submitted.file_path)
    assert submitted.approved_at is None and submitted.rejected_at is None
    assert audit_actions(db, submitted.id) == ["REPORT_SUBMIT"]

    notifications = db.query(Notification).filter(Notification.user_id == hod_user.id).all()
    assert len(notifications) == 1
    assert notifications[0].type == NotificationType.REPORT_SUBMITTED
    assert notifications[0].report_id == submitted.id


def test_submit_requires_week_ending(db, file_store, staff_user):
    with pytest.raises(ValidationFailed) as exc_info:
        report_service.submit_report(db, staff_user, file_store, None, pdf_bytes(), "application/pdf")
    assert exc_info.value.field == "week_ending"
    assert db.query(Report).count() == 0


def test_submit_rejects_non_pdf(db, file_store, staff_user):
    with pytest.raises(ValidationFailed) as exc_info:
        report_service.submit_report(db, staff_user, file_store, WEEK, b"hello", "text/plain", "notes.txt")
    assert exc_info.value.field == "file"
    assert db.query(Report).count() == 0


def test_approve_by_department_head(db, submitted, hod_user, staff_user):
    report = report_service.approve_report(db, submitted.id, hod_user, remarks="Looks good")

    assert report.status == ReportStatus.APPROVED
    assert report.approved_at is not None
    assert report.rejected_at is None

    entry = (
        db.query(AuditLog)
        .filter(AuditLog.action == "REPORT_APPROVE", AuditLog.entity_id == report.id)
        .one()
    )
    assert entry.actor_id == hod_user.id
    assert entry.meta_json["before"] == "SUBMITTED"
    assert entry.meta_json["after"] == "APPROVED"
    assert entry.meta_json["remarks"] == "Looks good"
    assert ensure_utc(entry.created_at) == ensure_utc(report.approved_at)

    owner_notes = db.query(Notification).filter(Notification.user_id == staff_user.id).all()
    assert [n.type for n in owner_notes] == [NotificationType.REPORT_APPROVED]


def test_reject_sets_rejected_at(db, submitted, hod_user):
    report = report_service.reject_report(db, submitted.id, hod_user)
    assert report.status == ReportStatus.REJECTED
    assert report.rejected_at is not None
    assert report.approved_at is None


def test_terminal_report_admits_nothing(db, submitted, hod_user, admin_user):
    report_service.approve_report(db, submitted.id, hod_user)

    with pytest.raises(AlreadyFinalized):
        report_service.reject_report(db, submitted.id, admin_user)
    with pytest.raises(AlreadyFinalized):
        report_service.approve_report(db, submitted.id, hod_user)
    with pytest.raises(AlreadyFinalized):
        report_service.start_review(db, submitted.id, hod_user)

    report = db.get(Report, submitted.id)
    assert report.status == ReportStatus.APPROVED
    assert report.rejected_at is None
    assert audit_actions(db, submitted.id) == ["REPORT_SUBMIT", "REPORT_APPROVE"]


def test_review_then_approve(db, submitted, hod_user):
    reviewed = report_service.start_review(db, submitted.id, hod_user)
    assert reviewed.status == ReportStatus.UNDER_REVIEW

    with pytest.raises(InvalidTransition):
        report_service.start_review(db, submitted.id, hod_user)

    approved = report_service.approve_report(db, submitted.id, hod_user)
    assert approved.status == ReportStatus.APPROVED
    assert audit_actions(db, submitted.id) == ["REPORT_SUBMIT", "REPORT_REVIEW", "REPORT_APPROVE"]


def test_approving_a_draft_is_invalid(db, file_store, staff_user, hod_user, admin_user):
    draft = report_service.create_draft(db, staff_user, file_store, week_ending=WEEK)
    assert draft.status == ReportStatus.DRAFT

    with pytest.raises(InvalidTransition):
        report_service.approve_report(db, draft.id, admin_user)
    assert db.get(Report, draft.id).status == ReportStatus.DRAFT


def test_approve_missing_report(db, admin_user):
    with pytest.raises(NotFound):
        report_service.approve_report(db, 9999, admin_user)


def test_head_of_other_department_is_forbidden(db, submitted, other_hod):
    with pytest.raises(Forbidden):
        report_service.approve_report(db, submitted.id, other_hod)

    assert db.get(Report, submitted.id).status == ReportStatus.SUBMITTED
    denied = db.query(AuditLog).filter(AuditLog.action == "ACCESS_DENIED").one()
    assert denied.actor_id == other_hod.id
    assert denied.meta_json["attempted_action"] == "REPORT_APPROVE"


def test_staff_cannot_approve_own_report(db, submitted, staff_user):
    with pytest.raises(Forbidden):
        report_service.approve_report(db, submitted.id, staff_user)


def test_hr_cannot_approve(db, submitted, hr_user):
    with pytest.raises(Forbidden):
        report_service.approve_report(db, submitted.id, hr_user)


def test_failed_audit_write_rolls_back_transition(db, submitted, hod_user, monkeypatch):
    def broken_log_audit(*args, **kwargs):
        raise RuntimeError("audit store unavailable")

    monkeypatch.setattr(report_service, "log_audit", broken_log_audit)

    with pytest.raises(RuntimeError):
        report_service.approve_report(db, submitted.id, hod_user)

    db.expire_all()
    report = db.get(Report, submitted.id)
    assert report.status == ReportStatus.SUBMITTED
    assert report.approved_at is None


def test_draft_edit_and_submit(db, file_store, staff_user, hod_user):
    draft = report_service.create_draft(db, staff_user, file_store)

    with pytest.raises(ValidationFailed) as exc_info:
        report_service.submit_draft(db, draft.id, staff_user)
    assert exc_info.value.field == "file"

    updated = report_service.replace_draft_file(
        db, draft.id, staff_user, file_store, pdf_bytes(2048), "application/pdf", "v2.pdf", week_ending=WEEK,
    )
    assert updated.file_name == "v2.pdf"
    assert updated.file_size == 2048

    submitted = report_service.submit_draft(db, draft.id, staff_user)
    assert submitted.status == ReportStatus.SUBMITTED
    assert audit_actions(db, draft.id) == ["REPORT_DRAFT_CREATE", "REPORT_FILE_UPDATE", "REPORT_SUBMIT"]

    with pytest.raises(InvalidTransition):
        report_service.replace_draft_file(db, draft.id, staff_user, file_store, pdf_bytes(), "application/pdf")


def test_other_staff_cannot_submit_draft(db, file_store, staff_user, other_staff):
    draft = report_service.create_draft(
        db, staff_user, file_store, week_ending=WEEK, data=pdf_bytes(), content_type="application/pdf",
    )
    with pytest.raises(Forbidden):
        report_service.submit_draft(db, draft.id, other_staff)


def test_resubmit_creates_new_report(db, file_store, submitted, hod_user, staff_user):
    report_service.reject_report(db, submitted.id, hod_user, remarks="Missing figures")

    fresh = report_service.resubmit_report(
        db, submitted.id, staff_user, file_store, pdf_bytes(4096), "application/pdf", "fixed.pdf",
    )
    assert fresh.id != submitted.id
    assert fresh.status == ReportStatus.SUBMITTED
    assert fresh.week_ending == WEEK
    assert fresh.file_name == "fixed.pdf"

    original = db.get(Report, submitted.id)
    assert original.status == ReportStatus.REJECTED
    assert audit_actions(db, submitted.id) == ["REPORT_SUBMIT", "REPORT_REJECT"]

    entry = db.query(AuditLog).filter(AuditLog.entity_id == fresh.id, AuditLog.action == "REPORT_SUBMIT").one()
    assert entry.meta_json["resubmission_of"] == submitted.id


def test_resubmit_requires_rejected_source(db, file_store, submitted, staff_user):
    with pytest.raises(InvalidTransition):
        report_service.resubmit_report(db, submitted.id, staff_user, file_store)


def test_list_reports_scoped_by_role(
    db, file_store, submitted, staff_user, other_staff, hod_user, other_hod, hr_user, admin_user
):
    report_service.submit_report(db, other_staff, file_store, WEEK, pdf_bytes(), "application/pdf")

    own, total = report_service.list_reports_for_actor(db, staff_user)
    assert total == 1
    assert own[0].id == submitted.id

    _, hod_total = report_service.list_reports_for_actor(db, hod_user)
    assert hod_total == 2

    _, other_total = report_service.list_reports_for_actor(db, other_hod)
    assert other_total == 0

    _, hr_total = report_service.list_reports_for_actor(db, hr_user)
    assert hr_total == 2

    # a filter never widens scope
    _, filtered = report_service.list_reports_for_actor(db, staff_user, staff_id=other_staff.id)
    assert filtered == 0

    _, admin_submitted = report_service.list_reports_for_actor(db, admin_user, status=ReportStatus.SUBMITTED)
    assert admin_submitted == 2


def test_report_stats(db, file_store, submitted, other_staff, hod_user, staff_user):
    second = report_service.submit_report(db, other_staff, file_store, WEEK, pdf_bytes(), "application/pdf")
    report_service.approve_report(db, second.id, hod_user)

    stats = report_service.report_stats(db, hod_user)
    assert stats["total"] == 2
    assert stats["by_status"]["SUBMITTED"] == 1
    assert stats["by_status"]["APPROVED"] == 1
    assert stats["by_status"]["REJECTED"] == 0

    assert report_service.report_stats(db, staff_user)["total"] == 1


def test_get_report_records_view(db, submitted, hod_user, other_staff):
    report = report_service.get_report(db, submitted.id, hod_user)
    assert report.id == submitted.id
    assert "REPORT_VIEW" in audit_actions(db, submitted.id)

    with pytest.raises(Forbidden):
        report_service.get_report(db, submitted.id, other_staff)


def test_comments_and_history(db, submitted, hod_user, staff_user, other_staff):
    report_service.add_comment(db, submitted.id, hod_user, "Please add totals")
    report_service.add_comment(db, submitted.id, staff_user, "Done")

    comments = report_service.list_comments(db, submitted.id, staff_user)
    assert [c.content for c in comments] == ["Please add totals", "Done"]

    history = report_service.list_report_history(db, submitted.id, staff_user)
    assert [h.action for h in history] == ["REPORT_SUBMIT", "COMMENT_CREATE", "COMMENT_CREATE"]

    with pytest.raises(Forbidden):
        report_service.add_comment(db, submitted.id, other_staff, "Nosy")
    with pytest.raises(ValidationFailed):
        report_service.add_comment(db, submitted.id, staff_user, "   ")
    assert len(report_service.list_comments(db, submitted.id, staff_user)) == 2


def test_open_report_file(db, file_store, submitted, hod_user):
    stream, name = report_service.open_report_file(db, submitted.id, hod_user, file_store)
    with stream:
        assert stream.read() == pdf_bytes()
    assert name == "week42.pdf"
