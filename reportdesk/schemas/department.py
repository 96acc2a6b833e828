"""
Department schemas
"""
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_serializer, ConfigDict


class DepartmentCreate(BaseModel):
    """Schema for creating a department"""
    name: str = Field(..., min_length=1, description="Department name")
    description: Optional[str] = Field(None, description="Department description")
    head_user_id: Optional[int] = Field(None, description="User ID of the head of department (role HOD)")


class DepartmentUpdate(BaseModel):
    """Schema for updating a department. Send head_user_id=null explicitly to clear the head."""
    name: Optional[str] = Field(None, min_length=1, description="Department name")
    description: Optional[str] = Field(None, description="Department description")
    head_user_id: Optional[int] = Field(None, description="User ID of the head of department (role HOD)")


class DepartmentOut(BaseModel):
    """Schema for department output. Datetimes in UTC (Z)."""
    id: int
    name: str
    description: Optional[str] = None
    head_user_id: Optional[int] = None
    created_at: datetime
    updated_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at", "updated_at", when_used="always")
    @classmethod
    def _ser_datetime(cls, dt):
        from reportdesk.utils.datetime_utils import iso_8601_utc
        return iso_8601_utc(dt)


class StaffAssignRequest(BaseModel):
    """Schema for assigning users to a department"""
    staff_ids: List[int] = Field(..., min_length=1, description="IDs of users to place in the department")


class StaffAssignResponse(BaseModel):
    department_id: int
    assigned_count: int
