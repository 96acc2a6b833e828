"""
Authorization gate - the single permission policy for every action

authorize() is pure: no database access, no clock, no logging. Everything it
needs (including the department a HOD heads) is passed in, so identical inputs
always produce identical decisions. Services look up the directory data, call
authorize(), and raise Forbidden on a deny via require_allowed().
"""
import enum
from dataclasses import dataclass
from typing import Optional

from reportdesk.core.errors import Forbidden
from reportdesk.models.user import Role
from reportdesk.utils.enums import enum_to_str


class Action(str, enum.Enum):
    REPORT_CREATE = "REPORT_CREATE"
    REPORT_READ = "REPORT_READ"
    REPORT_EDIT = "REPORT_EDIT"
    REPORT_REVIEW = "REPORT_REVIEW"
    REPORT_APPROVE = "REPORT_APPROVE"
    REPORT_REJECT = "REPORT_REJECT"
    REPORT_COMMENT = "REPORT_COMMENT"
    STAFF_READ = "STAFF_READ"
    USER_MANAGE = "USER_MANAGE"
    USER_DELETE = "USER_DELETE"
    DEPARTMENT_MANAGE = "DEPARTMENT_MANAGE"
    DEPARTMENT_DELETE = "DEPARTMENT_DELETE"
    AUDIT_READ = "AUDIT_READ"


# HR: user/department administration plus read access to reports
HR_ACTIONS = frozenset({
    Action.USER_MANAGE,
    Action.DEPARTMENT_MANAGE,
    Action.STAFF_READ,
    Action.REPORT_READ,
})

# HOD: scoped to reports and staff of the department they head
HOD_REPORT_ACTIONS = frozenset({
    Action.REPORT_READ,
    Action.REPORT_REVIEW,
    Action.REPORT_APPROVE,
    Action.REPORT_REJECT,
    Action.REPORT_COMMENT,
})

# STAFF: only their own reports
STAFF_REPORT_ACTIONS = frozenset({
    Action.REPORT_CREATE,
    Action.REPORT_READ,
    Action.REPORT_EDIT,
    Action.REPORT_COMMENT,
})


@dataclass(frozen=True)
class Resource:
    """What the action touches: the owning staff member and/or the scoping department"""
    kind: str
    owner_id: Optional[int] = None
    department_id: Optional[int] = None


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: Optional[str] = None

    def __bool__(self) -> bool:
        return self.allowed


ALLOW = Decision(True)


def deny(reason: str) -> Decision:
    return Decision(False, reason)


def authorize(
    actor_role,
    actor_id: int,
    action: Action,
    resource: Optional[Resource] = None,
    *,
    headed_department_id: Optional[int] = None,
) -> Decision:
    """
    Decide whether an actor may perform an action on a resource

    Rules (first match wins):
        1. ADMIN may do anything.
        2. HR may administer users/departments and read reports; never review,
           approve or reject.
        3. HOD may read/review/approve/reject/comment on reports of the department
           they head, and read that department's staff. No content edits.
        4. STAFF may create/read/edit/comment only on their own reports.
        5. Otherwise deny.
    """
    role = enum_to_str(actor_role)
    action = Action(action)

    if role == Role.ADMIN.value:
        return ALLOW

    if role == Role.HR.value:
        if action in HR_ACTIONS:
            return ALLOW
        return deny(f"HR may not perform {action.value}")

    if role == Role.HOD.value:
        if action not in HOD_REPORT_ACTIONS and action != Action.STAFF_READ:
            return deny(f"HOD may not perform {action.value}")
        if headed_department_id is None:
            return deny("HOD does not head a department")
        if resource is None or resource.department_id != headed_department_id:
            return deny("Resource is outside the department you head")
        return ALLOW

    if role == Role.STAFF.value:
        if action not in STAFF_REPORT_ACTIONS:
            return deny(f"STAFF may not perform {action.value}")
        if resource is None or resource.owner_id != actor_id:
            return deny("STAFF may only access their own reports")
        return ALLOW

    return deny(f"Role {role!r} has no permissions")


def require_allowed(decision: Decision) -> None:
    """Raise Forbidden when the decision is a deny"""
    if not decision.allowed:
        raise Forbidden(decision.reason or "Access denied")
