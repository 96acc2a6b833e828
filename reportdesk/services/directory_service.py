"""
Directory service - departments, their heads and their staff

Read side (department_of / head_of / staff_of / headed_department_id) feeds the
authorization gate. Write side enforces the one-department-per-HOD rule when
the assignment is made, not when it is read.
"""
import logging
from typing import List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from reportdesk.core.errors import Conflict, NotFound, ValidationFailed, conflict_on_integrity_error
from reportdesk.models.department import Department
from reportdesk.models.report import Report
from reportdesk.models.user import User, Role
from reportdesk.schemas.department import DepartmentCreate, DepartmentUpdate
from reportdesk.services.audit_service import log_audit
from reportdesk.services.authorization import Action, Resource, authorize, require_allowed

logger = logging.getLogger(__name__)


def department_of(db: Session, user_id: int) -> Optional[Department]:
    """The department a user belongs to (owning dept for STAFF, headed dept for HOD)"""
    user = db.get(User, user_id)
    if user is None or user.department_id is None:
        return None
    return db.get(Department, user.department_id)


def head_of(db: Session, department_id: Optional[int]) -> Optional[int]:
    """User ID of the department head, if any"""
    if department_id is None:
        return None
    department = db.get(Department, department_id)
    return department.head_user_id if department else None


def staff_of(db: Session, department_id: int) -> Set[int]:
    """IDs of every user whose department is department_id"""
    rows = db.query(User.id).filter(User.department_id == department_id).all()
    return {row[0] for row in rows}


def headed_department_id(db: Session, user: User) -> Optional[int]:
    """Department the user heads, or None for non-HODs and HODs without one"""
    if user.role != Role.HOD:
        return None
    row = db.query(Department.id).filter(Department.head_user_id == user.id).first()
    return row[0] if row else None


def check_access(db: Session, actor: User, action: Action, resource: Optional[Resource] = None) -> None:
    """Run the authorization gate for actor with directory data filled in; raise Forbidden on deny"""
    decision = authorize(
        actor.role,
        actor.id,
        action,
        resource,
        headed_department_id=headed_department_id(db, actor),
    )
    require_allowed(decision)


def get_department(db: Session, department_id: int) -> Department:
    """Get a department by ID or raise NotFound"""
    department = db.get(Department, department_id)
    if not department:
        raise NotFound(f"Department with id {department_id} not found")
    return department


def list_departments(db: Session, skip: int = 0, limit: int = 100) -> List[Department]:
    return db.query(Department).order_by(Department.name.asc()).offset(skip).limit(limit).all()


def _ensure_unique_name(db: Session, name: str, exclude_id: Optional[int] = None) -> None:
    query = db.query(Department).filter(func.lower(Department.name) == func.lower(name))
    if exclude_id is not None:
        query = query.filter(Department.id != exclude_id)
    if query.first():
        raise Conflict(f"Department with name '{name}' already exists")


def _release_head(db: Session, department: Department) -> None:
    previous = db.get(User, department.head_user_id) if department.head_user_id is not None else None
    if previous is not None and previous.department_id == department.id:
        previous.department_id = None


def _assign_head(db: Session, department: Department, head_user_id: Optional[int]) -> None:
    """
    Make head_user_id the head of department (None clears the head).

    The HOD's own department_id follows the department they head, so a
    replaced or cleared head is detached from the department as well.
    """
    if head_user_id is None:
        _release_head(db, department)
        department.head_user_id = None
        return

    hod = db.get(User, head_user_id)
    if not hod:
        raise ValidationFailed(f"User with id {head_user_id} not found", field="head_user_id")
    if hod.role != Role.HOD:
        raise ValidationFailed(
            f"User with id {head_user_id} is not a HOD. Only HOD users can head a department.",
            field="head_user_id",
        )

    query = db.query(Department).filter(Department.head_user_id == head_user_id)
    if department.id is not None:
        query = query.filter(Department.id != department.id)
    already_heading = query.first()
    if already_heading:
        raise Conflict(f"HOD {head_user_id} already heads department '{already_heading.name}'")

    if department.head_user_id != head_user_id:
        _release_head(db, department)
    department.head_user_id = head_user_id
    hod.department_id = department.id


def create_department(db: Session, department_data: DepartmentCreate, actor: User) -> Department:
    """
    Create a new department, optionally with its head

    Raises:
        Forbidden: actor may not manage departments
        Conflict: name already used, or the HOD already heads another department
    """
    check_access(db, actor, Action.DEPARTMENT_MANAGE)
    _ensure_unique_name(db, department_data.name)

    with conflict_on_integrity_error(db, "Department name or head already taken"):
        department = Department(name=department_data.name, description=department_data.description)
        db.add(department)
        db.flush()
        _assign_head(db, department, department_data.head_user_id)

        log_audit(
            db,
            actor_id=actor.id,
            action="DEPARTMENT_CREATE",
            entity_type="department",
            entity_id=department.id,
            details=f"Department created: {department.name}",
            meta={"name": department.name, "head_user_id": department.head_user_id},
        )
        db.commit()
    db.refresh(department)
    return department


def update_department(
    db: Session,
    department_id: int,
    department_data: DepartmentUpdate,
    actor: User
) -> Department:
    """
    Update a department's name, description and/or head

    Raises:
        NotFound, Forbidden, Conflict
    """
    check_access(db, actor, Action.DEPARTMENT_MANAGE)
    department = get_department(db, department_id)
    changes = department_data.model_dump(exclude_unset=True)

    if department_data.name is not None:
        _ensure_unique_name(db, department_data.name, exclude_id=department_id)
        department.name = department_data.name
    if "description" in changes:
        department.description = department_data.description
    if "head_user_id" in changes:
        _assign_head(db, department, department_data.head_user_id)

    with conflict_on_integrity_error(db, "Department name or head already taken"):
        log_audit(
            db,
            actor_id=actor.id,
            action="DEPARTMENT_UPDATE",
            entity_type="department",
            entity_id=department.id,
            details=f"Department updated: {department.name}",
            meta={"updated_fields": changes},
        )
        db.commit()
    db.refresh(department)
    return department


def delete_department(db: Session, department_id: int, actor: User) -> None:
    """
    Delete an empty department (ADMIN only)

    Raises:
        Conflict: staff members or reports still reference the department
    """
    check_access(db, actor, Action.DEPARTMENT_DELETE)
    department = get_department(db, department_id)

    if db.query(User.id).filter(User.department_id == department_id).first():
        raise Conflict("Cannot delete department with assigned staff")
    if db.query(Report.id).filter(Report.department_id == department_id).first():
        raise Conflict("Cannot delete department with associated reports")

    name = department.name
    db.delete(department)
    log_audit(
        db,
        actor_id=actor.id,
        action="DEPARTMENT_DELETE",
        entity_type="department",
        entity_id=department_id,
        details=f"Department deleted: {name}",
    )
    db.commit()


def assign_staff_to_department(
    db: Session,
    department_id: int,
    staff_ids: List[int],
    actor: User
) -> int:
    """
    Place users in a department

    HOD users are placed through head assignment instead, since a HOD's
    department is the one they head.

    Returns:
        Number of users assigned
    """
    check_access(db, actor, Action.DEPARTMENT_MANAGE)
    department = get_department(db, department_id)

    unique_ids = sorted(set(staff_ids))
    users = db.query(User).filter(User.id.in_(unique_ids)).all()
    missing_ids = set(unique_ids) - {u.id for u in users}
    if missing_ids:
        raise ValidationFailed(f"Users not found: {sorted(missing_ids)}", field="staff_ids")

    hods = [u.id for u in users if u.role == Role.HOD]
    if hods:
        raise ValidationFailed(
            f"HOD users must be assigned as department head, not as staff: {hods}",
            field="staff_ids",
        )

    for user in users:
        user.department_id = department.id

    log_audit(
        db,
        actor_id=actor.id,
        action="STAFF_ASSIGN",
        entity_type="department",
        entity_id=department.id,
        details=f"Staff assigned to department: {department.name}",
        meta={"staff_ids": unique_ids},
    )
    db.commit()
    logger.info("assigned %d users to department_id=%s", len(users), department.id)
    return len(users)


def remove_staff_from_department(db: Session, department_id: int, user_id: int, actor: User) -> None:
    """Clear a user's department (the user must currently belong to it)"""
    check_access(db, actor, Action.DEPARTMENT_MANAGE)
    department = get_department(db, department_id)

    user = db.get(User, user_id)
    if not user:
        raise NotFound(f"User with id {user_id} not found")
    if user.department_id != department_id:
        raise ValidationFailed("User is not assigned to this department", field="user_id")
    if department.head_user_id == user_id:
        raise Conflict("Cannot remove the department head; assign a different head first")

    user.department_id = None
    log_audit(
        db,
        actor_id=actor.id,
        action="STAFF_REMOVE",
        entity_type="department",
        entity_id=department.id,
        details=f"Staff removed from department: {department.name}",
        meta={"user_id": user_id},
    )
    db.commit()


def list_department_staff(db: Session, department_id: int, actor: User) -> List[User]:
    """Users of a department; HODs only see the department they head"""
    department = get_department(db, department_id)
    check_access(db, actor, Action.STAFF_READ, Resource(kind="department", department_id=department.id))
    return (
        db.query(User)
        .filter(User.department_id == department.id)
        .order_by(User.name.asc())
        .all()
    )
