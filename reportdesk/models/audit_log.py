"""
Audit log model
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, JSON
from reportdesk.db.base import Base


class AuditLog(Base):
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    # Nullable only so that anonymised entries can survive their actor's deletion
    actor_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String, nullable=False, index=True)  # e.g. "REPORT_APPROVE", "USER_DELETE"
    details = Column(Text, nullable=True)  # human readable summary
    entity_type = Column(String, nullable=False)  # e.g. "report", "user", "department"
    entity_id = Column(Integer, nullable=True)
    meta_json = Column(JSON, nullable=True)
    # Set explicitly by the audit service (SQLite server_default loses timezone)
    created_at = Column(DateTime(timezone=True), nullable=False)
