"""
Department endpoints

Any authenticated user may browse departments; changes are ADMIN/HR and
deletion is ADMIN-only.
"""
from typing import List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from reportdesk.core.deps import get_db, get_current_user
from reportdesk.models.user import User
from reportdesk.schemas.department import (
    DepartmentCreate,
    DepartmentOut,
    DepartmentUpdate,
    StaffAssignRequest,
    StaffAssignResponse,
)
from reportdesk.schemas.user import UserOut
from reportdesk.services import directory_service

router = APIRouter()


@router.post("", response_model=DepartmentOut, status_code=201)
async def create_department_endpoint(
    department_data: DepartmentCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Create a new department (ADMIN/HR)"""
    return directory_service.create_department(db, department_data, current_user)


@router.get("", response_model=List[DepartmentOut])
async def list_departments_endpoint(
    skip: int = Query(0, ge=0),
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return directory_service.list_departments(db, skip=skip, limit=limit)


@router.get("/{department_id}", response_model=DepartmentOut)
async def get_department_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    return directory_service.get_department(db, department_id)


@router.patch("/{department_id}", response_model=DepartmentOut)
async def update_department_endpoint(
    department_id: int,
    department_data: DepartmentUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Update a department's name, description or head (ADMIN/HR)"""
    return directory_service.update_department(db, department_id, department_data, current_user)


@router.delete("/{department_id}", status_code=204)
async def delete_department_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Delete an empty department (ADMIN-only)"""
    directory_service.delete_department(db, department_id, current_user)


@router.get("/{department_id}/staff", response_model=List[UserOut])
async def list_department_staff_endpoint(
    department_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    """Members of a department (ADMIN/HR, or the HOD who heads it)"""
    return directory_service.list_department_staff(db, department_id, current_user)


@router.post("/{department_id}/staff", response_model=StaffAssignResponse)
async def assign_staff_endpoint(
    department_id: int,
    assign_data: StaffAssignRequest,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    count = directory_service.assign_staff_to_department(db, department_id, assign_data.staff_ids, current_user)
    return StaffAssignResponse(department_id=department_id, assigned_count=count)


@router.delete("/{department_id}/staff/{user_id}", status_code=204)
async def remove_staff_endpoint(
    department_id: int,
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    directory_service.remove_staff_from_department(db, department_id, user_id, current_user)
