"""
Department model
"""
from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, text
from sqlalchemy.orm import relationship
from reportdesk.db.base import Base


class Department(Base):
    __tablename__ = "departments"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, unique=True, nullable=False, index=True)
    description = Column(Text, nullable=True)
    # A HOD heads at most one department
    head_user_id = Column(
        Integer,
        ForeignKey("users.id", use_alter=True, name="fk_departments_head_user_id"),
        unique=True,
        nullable=True,
    )
    created_at = Column(DateTime(timezone=True), server_default=text("CURRENT_TIMESTAMP"), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        server_default=text("CURRENT_TIMESTAMP"),
        onupdate=text("CURRENT_TIMESTAMP"),
        nullable=False,
    )

    # Relationships
    head = relationship("User", foreign_keys=[head_user_id])
    staff = relationship("User", foreign_keys="User.department_id", back_populates="department")
