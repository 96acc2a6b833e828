"""
Report, comment and audit schemas
"""
from datetime import date, datetime
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field, field_serializer, ConfigDict
from reportdesk.models.report import ReportStatus


class ReportOut(BaseModel):
    """Schema for report output. Datetimes in UTC (Z)."""
    id: int
    staff_id: int
    department_id: Optional[int] = None
    week_ending: Optional[date] = None
    file_name: Optional[str] = None
    file_path: Optional[str] = None
    file_size: Optional[int] = None
    status: ReportStatus
    created_at: datetime
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "approved_at", "rejected_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        from reportdesk.utils.datetime_utils import iso_8601_utc
        return iso_8601_utc(dt)


class ReportListResponse(BaseModel):
    items: List[ReportOut]
    total: int


class DecisionRequest(BaseModel):
    """Optional remark attached to an approve/reject decision"""
    remarks: Optional[str] = Field(None, max_length=2000, description="Reviewer remark")


class ReportStatsOut(BaseModel):
    """Counts of visible reports by status"""
    total: int
    by_status: Dict[str, int]


class CommentCreate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000, description="Comment text")


class CommentOut(BaseModel):
    id: int
    report_id: int
    author_id: int
    content: str
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        from reportdesk.utils.datetime_utils import iso_8601_utc
        return iso_8601_utc(dt)


class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[int] = None
    action: str
    details: Optional[str] = None
    entity_type: str
    entity_id: Optional[int] = None
    meta_json: Optional[Any] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        from reportdesk.utils.datetime_utils import iso_8601_utc
        return iso_8601_utc(dt)


class AuditLogListResponse(BaseModel):
    items: List[AuditLogOut]
    total: int
