"""
User administration endpoints (ADMIN/HR; delete is ADMIN-only)
"""
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from reportdesk.core.deps import get_db, get_current_user
from reportdesk.models.user import Role, User
from reportdesk.schemas.user import PasswordReset, UserCreate, UserListResponse, UserOut, UserUpdate
from reportdesk.services import user_service
from reportdesk.services.authorization import Action
from reportdesk.services.directory_service import check_access

router = APIRouter()


@router.get("/me", response_model=UserOut)
async def get_me_endpoint(current_user: User = Depends(get_current_user)):
    """Current authenticated user's profile"""
    return current_user


@router.post("", response_model=UserOut, status_code=201)
async def create_user_endpoint(
    user_data: UserCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.create_user(db, user_data, current_user)


@router.get("", response_model=UserListResponse)
async def list_users_endpoint(
    role: Optional[Role] = Query(None),
    department_id: Optional[int] = Query(None),
    is_active: Optional[bool] = Query(None),
    search: Optional[str] = Query(None, description="Matches name, username or email"),
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    items, total = user_service.list_users(
        db, current_user,
        role=role, department_id=department_id, is_active=is_active, search=search,
        skip=skip, limit=limit,
    )
    return UserListResponse(items=items, total=total)


@router.get("/{user_id}", response_model=UserOut)
async def get_user_endpoint(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Get a user by ID (ADMIN/HR, or the user themselves)"""
    if user_id != current_user.id:
        check_access(db, current_user, Action.USER_MANAGE)
    return user_service.get_user(db, user_id)


@router.patch("/{user_id}", response_model=UserOut)
async def update_user_endpoint(
    user_id: int,
    user_data: UserUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return user_service.update_user(db, user_id, user_data, current_user)


@router.post("/{user_id}/reset-password", status_code=204)
async def reset_password_endpoint(
    user_id: int,
    reset_data: PasswordReset,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user_service.reset_password(db, user_id, reset_data.new_password, current_user)


@router.delete("/{user_id}", status_code=204)
async def delete_user_endpoint(
    user_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a user who owns no reports (ADMIN-only)"""
    user_service.delete_user(db, user_id, current_user)
