"""
Report models
"""
import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    ForeignKey,
    Enum as SQLEnum,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import text
from reportdesk.db.base import Base


class ReportStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


TERMINAL_REPORT_STATUSES = frozenset({ReportStatus.APPROVED, ReportStatus.REJECTED})

# Target status -> statuses it may be entered from
REPORT_TRANSITIONS = {
    ReportStatus.SUBMITTED: (ReportStatus.DRAFT,),
    ReportStatus.UNDER_REVIEW: (ReportStatus.SUBMITTED,),
    ReportStatus.APPROVED: (ReportStatus.SUBMITTED, ReportStatus.UNDER_REVIEW),
    ReportStatus.REJECTED: (ReportStatus.SUBMITTED, ReportStatus.UNDER_REVIEW),
}


class Report(Base):
    __tablename__ = "reports"

    id = Column(Integer, primary_key=True, index=True)
    staff_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Snapshot of the owner's department at submission time
    department_id = Column(Integer, ForeignKey("departments.id"), nullable=True, index=True)
    week_ending = Column(Date, nullable=True)
    file_name = Column(String, nullable=True)
    file_path = Column(String, nullable=True)
    file_size = Column(Integer, nullable=True)
    status = Column(SQLEnum(ReportStatus), nullable=False, server_default=text("'DRAFT'"))
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejected_at = Column(DateTime(timezone=True), nullable=True)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    staff = relationship("User", foreign_keys=[staff_id], back_populates="reports")
    department = relationship("Department")
    comments = relationship("Comment", back_populates="report", order_by="Comment.id")

    __table_args__ = (
        Index("ix_reports_staff_week", "staff_id", "week_ending"),
        CheckConstraint(
            "(status = 'APPROVED' AND approved_at IS NOT NULL AND rejected_at IS NULL)"
            " OR (status = 'REJECTED' AND rejected_at IS NOT NULL AND approved_at IS NULL)"
            " OR (status NOT IN ('APPROVED', 'REJECTED') AND approved_at IS NULL AND rejected_at IS NULL)",
            name="check_report_decision_timestamps",
        ),
    )
