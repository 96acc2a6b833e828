"""
Report endpoints: upload, lifecycle actions, comments and history

Handlers are plain functions so FastAPI runs them in its threadpool; they block
on the database, the file store and notification retry backoff.
"""
from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile
from fastapi.responses import Response
from sqlalchemy.orm import Session
from reportdesk.core.config import settings
from reportdesk.core.deps import get_db, get_current_user, get_file_store
from reportdesk.models.report import ReportStatus
from reportdesk.models.user import User
from reportdesk.schemas.report import (
    AuditLogOut,
    CommentCreate,
    CommentOut,
    DecisionRequest,
    ReportListResponse,
    ReportOut,
    ReportStatsOut,
)
from reportdesk.services import report_service
from reportdesk.services.file_store import FileStore

router = APIRouter()


def _read_upload(file: Optional[UploadFile]):
    """(data, content_type, filename) of an upload; reads at most one byte past the limit"""
    if file is None:
        return None, None, None
    data = file.file.read(settings.MAX_UPLOAD_BYTES + 1)
    return data, file.content_type, file.filename


@router.post("", response_model=ReportOut, status_code=201)
def create_report_endpoint(
    week_ending: Optional[date] = Form(None),
    draft: bool = Form(False),
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    file_store: FileStore = Depends(get_file_store),
):
    """
    Upload a weekly PDF report

    With draft=true the report stays a DRAFT (file optional); otherwise it is
    submitted straight away and the department head is notified.
    """
    data, content_type, filename = _read_upload(file)
    if draft:
        return report_service.create_draft(
            db, current_user, file_store,
            week_ending=week_ending, data=data, content_type=content_type, filename=filename,
        )
    return report_service.submit_report(
        db, current_user, file_store, week_ending, data, content_type, filename,
    )


@router.get("", response_model=ReportListResponse)
def list_reports_endpoint(
    status: Optional[ReportStatus] = Query(None),
    department_id: Optional[int] = Query(None),
    staff_id: Optional[int] = Query(None),
    week_from: Optional[date] = Query(None),
    week_to: Optional[date] = Query(None),
    skip: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List reports visible to the caller (own for STAFF, headed department for HOD, all for ADMIN/HR)"""
    items, total = report_service.list_reports_for_actor(
        db, current_user,
        status=status, department_id=department_id, staff_id=staff_id,
        week_from=week_from, week_to=week_to, skip=skip, limit=limit,
    )
    return ReportListResponse(items=items, total=total)


@router.get("/stats", response_model=ReportStatsOut)
def report_stats_endpoint(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Report counts by status within the caller's scope"""
    return report_service.report_stats(db, current_user)


@router.get("/{report_id}", response_model=ReportOut)
def get_report_endpoint(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return report_service.get_report(db, report_id, current_user)


@router.get("/{report_id}/file")
def download_report_file_endpoint(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    file_store: FileStore = Depends(get_file_store),
):
    """Download the report PDF"""
    stream, file_name = report_service.open_report_file(db, report_id, current_user, file_store)
    with stream:
        content = stream.read()
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{file_name}"'},
    )


@router.put("/{report_id}/file", response_model=ReportOut)
def replace_report_file_endpoint(
    report_id: int,
    file: UploadFile = File(...),
    week_ending: Optional[date] = Form(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    file_store: FileStore = Depends(get_file_store),
):
    """Replace the file of a DRAFT report"""
    data, content_type, filename = _read_upload(file)
    return report_service.replace_draft_file(
        db, report_id, current_user, file_store, data, content_type, filename, week_ending=week_ending,
    )


@router.post("/{report_id}/submit", response_model=ReportOut)
def submit_report_endpoint(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Submit a DRAFT report"""
    return report_service.submit_draft(db, report_id, current_user)


@router.post("/{report_id}/review", response_model=ReportOut)
def start_review_endpoint(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Mark a SUBMITTED report as UNDER_REVIEW (HOD of its department or ADMIN)"""
    return report_service.start_review(db, report_id, current_user)


@router.post("/{report_id}/approve", response_model=ReportOut)
def approve_report_endpoint(
    report_id: int,
    decision: Optional[DecisionRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Approve a report (HOD of its department or ADMIN)"""
    remarks = decision.remarks if decision else None
    return report_service.approve_report(db, report_id, current_user, remarks=remarks)


@router.post("/{report_id}/reject", response_model=ReportOut)
def reject_report_endpoint(
    report_id: int,
    decision: Optional[DecisionRequest] = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Reject a report (HOD of its department or ADMIN)"""
    remarks = decision.remarks if decision else None
    return report_service.reject_report(db, report_id, current_user, remarks=remarks)


@router.post("/{report_id}/resubmit", response_model=ReportOut, status_code=201)
def resubmit_report_endpoint(
    report_id: int,
    file: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    file_store: FileStore = Depends(get_file_store),
):
    """Submit a new report for the week of a REJECTED one (optionally with a new file)"""
    data, content_type, filename = _read_upload(file)
    return report_service.resubmit_report(
        db, report_id, current_user, file_store, data=data, content_type=content_type, filename=filename,
    )


@router.get("/{report_id}/comments", response_model=List[CommentOut])
def list_comments_endpoint(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return report_service.list_comments(db, report_id, current_user)


@router.post("/{report_id}/comments", response_model=CommentOut, status_code=201)
def add_comment_endpoint(
    report_id: int,
    comment_data: CommentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return report_service.add_comment(db, report_id, current_user, comment_data.content)


@router.get("/{report_id}/history", response_model=List[AuditLogOut])
def report_history_endpoint(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Audit trail of a report, oldest first"""
    return report_service.list_report_history(db, report_id, current_user)
