"""
User administration service
"""
import logging
from typing import List, Optional, Tuple

from sqlalchemy import func, or_, update
from sqlalchemy.orm import Session

from reportdesk.core.config import settings
from reportdesk.core.errors import (
    Conflict,
    HasDependentReports,
    NotFound,
    ValidationFailed,
    conflict_on_integrity_error,
)
from reportdesk.core.security import hash_password
from reportdesk.models.audit_log import AuditLog
from reportdesk.models.comment import Comment
from reportdesk.models.department import Department
from reportdesk.models.notification import Notification
from reportdesk.models.report import Report
from reportdesk.models.user import User, Role
from reportdesk.schemas.user import UserCreate, UserUpdate, RegisterRequest
from reportdesk.services.audit_service import log_audit
from reportdesk.services.authorization import Action
from reportdesk.services.directory_service import check_access

logger = logging.getLogger(__name__)


def _ensure_unique(db: Session, username: Optional[str], email: Optional[str], exclude_id: Optional[int] = None) -> None:
    if username is not None:
        query = db.query(User.id).filter(func.lower(User.username) == func.lower(username))
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise Conflict(f"Username '{username}' is already taken")
    if email is not None:
        query = db.query(User.id).filter(User.email == email)
        if exclude_id is not None:
            query = query.filter(User.id != exclude_id)
        if query.first():
            raise Conflict("Email already in use")


def _ensure_department_exists(db: Session, department_id: Optional[int]) -> None:
    if department_id is not None and db.get(Department, department_id) is None:
        raise ValidationFailed(f"Department with id {department_id} not found", field="department_id")


def get_user(db: Session, user_id: int) -> User:
    """Get a user by ID or raise NotFound"""
    user = db.get(User, user_id)
    if not user:
        raise NotFound(f"User with id {user_id} not found")
    return user


def register_user(db: Session, data: RegisterRequest) -> User:
    """Self registration. Always creates an active STAFF account with no department."""
    _ensure_unique(db, data.username, data.email)
    user = User(
        username=data.username,
        email=data.email,
        name=data.name,
        password_hash=hash_password(data.password),
        role=Role.STAFF.value,
        is_active=True,
    )
    with conflict_on_integrity_error(db, "Username or email already in use"):
        db.add(user)
        db.flush()
        log_audit(
            db,
            actor_id=user.id,
            action="USER_REGISTER",
            entity_type="user",
            entity_id=user.id,
            details=f"User registered: {user.username}",
        )
        db.commit()
    db.refresh(user)
    return user


def create_user(db: Session, user_data: UserCreate, actor: User) -> User:
    """
    Create a user account (ADMIN/HR)

    Raises:
        Forbidden: actor may not manage users
        Conflict: username or email already in use
        ValidationFailed: department does not exist
    """
    check_access(db, actor, Action.USER_MANAGE)
    _ensure_unique(db, user_data.username, user_data.email)
    _ensure_department_exists(db, user_data.department_id)

    user = User(
        username=user_data.username,
        email=user_data.email,
        name=user_data.name,
        password_hash=hash_password(user_data.password),
        role=user_data.role.value,
        department_id=user_data.department_id,
        is_active=user_data.is_active,
    )
    with conflict_on_integrity_error(db, "Username or email already in use"):
        db.add(user)
        db.flush()

        log_audit(
            db,
            actor_id=actor.id,
            action="USER_CREATE",
            entity_type="user",
            entity_id=user.id,
            details=f"User created: {user.username}",
            meta={"username": user.username, "role": user.role, "department_id": user.department_id},
        )
        db.commit()
    db.refresh(user)
    return user


def update_user(db: Session, user_id: int, user_data: UserUpdate, actor: User) -> User:
    """
    Update a user's profile, role, department or active flag (ADMIN/HR)

    A HOD who heads a department keeps the HOD role and that department until
    the headship is reassigned.

    Raises:
        NotFound, Forbidden, Conflict, ValidationFailed
    """
    check_access(db, actor, Action.USER_MANAGE)
    user = get_user(db, user_id)
    changes = user_data.model_dump(exclude_unset=True)

    headed = db.query(Department).filter(Department.head_user_id == user.id).first()

    if "email" in changes and user_data.email is not None and user_data.email != user.email:
        _ensure_unique(db, None, user_data.email, exclude_id=user.id)
        user.email = user_data.email
    if user_data.name is not None:
        user.name = user_data.name
    if "role" in changes and user_data.role is not None:
        if headed and user_data.role != Role.HOD:
            raise Conflict(f"User heads department '{headed.name}'; reassign the head before changing role")
        user.role = user_data.role.value
    if "department_id" in changes:
        if headed and user_data.department_id != headed.id:
            raise Conflict(f"User heads department '{headed.name}'; reassign the head before moving them")
        _ensure_department_exists(db, user_data.department_id)
        user.department_id = user_data.department_id
    if "is_active" in changes and user_data.is_active is not None:
        if user.id == actor.id and not user_data.is_active:
            raise ValidationFailed("Cannot deactivate your own account", field="is_active")
        user.is_active = user_data.is_active

    with conflict_on_integrity_error(db, "Email already in use"):
        log_audit(
            db,
            actor_id=actor.id,
            action="USER_UPDATE",
            entity_type="user",
            entity_id=user.id,
            details=f"User updated: {user.username}",
            meta={"changes": sorted(changes.keys())},
        )
        db.commit()
    db.refresh(user)
    return user


def reset_password(db: Session, user_id: int, new_password: str, actor: User) -> None:
    """Set a new password for a user (ADMIN/HR)"""
    check_access(db, actor, Action.USER_MANAGE)
    user = get_user(db, user_id)
    user.password_hash = hash_password(new_password)
    log_audit(
        db,
        actor_id=actor.id,
        action="USER_PASSWORD_RESET",
        entity_type="user",
        entity_id=user.id,
        details=f"Password reset for: {user.username}",
    )
    db.commit()


def list_users(
    db: Session,
    actor: User,
    role: Optional[Role] = None,
    department_id: Optional[int] = None,
    is_active: Optional[bool] = None,
    search: Optional[str] = None,
    skip: int = 0,
    limit: int = 20,
) -> Tuple[List[User], int]:
    """List users with filters (ADMIN/HR), newest first"""
    check_access(db, actor, Action.USER_MANAGE)
    query = db.query(User)

    if role is not None:
        query = query.filter(User.role == role.value)
    if department_id is not None:
        query = query.filter(User.department_id == department_id)
    if is_active is not None:
        query = query.filter(User.is_active == is_active)
    if search:
        pattern = f"%{search.strip().lower()}%"
        query = query.filter(or_(
            func.lower(User.name).like(pattern),
            func.lower(User.username).like(pattern),
            func.lower(User.email).like(pattern),
        ))

    total = query.count()
    items = query.order_by(User.created_at.desc(), User.id.desc()).offset(skip).limit(limit).all()
    return items, total


def delete_user(db: Session, user_id: int, actor: User) -> None:
    """
    Hard-delete a user who owns no reports (ADMIN only)

    Everything hanging off the user goes in one transaction, in this order:
    authored comments, received notifications, audit entries they made
    (removed, or kept with the actor cleared when AUDIT_ON_USER_DELETE is
    "anonymize"), department headship, then the user row. The deletion itself
    is audited under the admin.

    Raises:
        Forbidden: actor is not ADMIN
        NotFound: user does not exist
        ValidationFailed: actor tried to delete themselves
        HasDependentReports: the user owns reports; deactivate instead
    """
    check_access(db, actor, Action.USER_DELETE)
    user = get_user(db, user_id)

    if user.id == actor.id:
        raise ValidationFailed("Cannot delete your own account", field="user_id")

    report_count = db.query(func.count(Report.id)).filter(Report.staff_id == user.id).scalar()
    if report_count:
        raise HasDependentReports(
            f"Cannot delete user with {report_count} existing report(s). Deactivate instead."
        )

    username = user.username
    try:
        db.query(Comment).filter(Comment.author_id == user.id).delete(synchronize_session=False)
        db.query(Notification).filter(Notification.user_id == user.id).delete(synchronize_session=False)
        if settings.AUDIT_ON_USER_DELETE == "anonymize":
            db.execute(update(AuditLog).where(AuditLog.actor_id == user.id).values(actor_id=None))
        else:
            db.query(AuditLog).filter(AuditLog.actor_id == user.id).delete(synchronize_session=False)
        db.execute(update(Department).where(Department.head_user_id == user.id).values(head_user_id=None))
        db.delete(user)
        db.flush()

        log_audit(
            db,
            actor_id=actor.id,
            action="USER_DELETE",
            entity_type="user",
            entity_id=user_id,
            details=f"User deleted: {username}",
            meta={"deleted_user_id": user_id, "audit_policy": settings.AUDIT_ON_USER_DELETE},
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("deleted user_id=%s by actor_id=%s", user_id, actor.id)
