"""
Identity resolution - who is calling, and may they act at all

Credential validity and account activity are independent checks; both must
hold. The role used for authorization is the one on the user row, so a role
change takes effect on the next request without re-issuing tokens.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.orm import Session

from reportdesk.core.errors import AccountInactive, Unauthenticated
from reportdesk.core.security import create_access_token, decode_token, verify_password
from reportdesk.models.user import User
from reportdesk.services.audit_service import log_audit_best_effort
from reportdesk.utils.datetime_utils import now_utc
from reportdesk.utils.enums import enum_to_str

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IdentityContext:
    user_id: int
    role: str
    department_id: Optional[int]


def verify_credential(token: Optional[str]) -> Tuple[int, Optional[str]]:
    """
    Decode a bearer token into (user_id, token_role)

    Raises:
        Unauthenticated: missing, malformed, expired or badly signed token
    """
    if not token:
        raise Unauthenticated("Not authenticated")
    try:
        payload = decode_token(token)
        sub_value = payload.get("sub")
        if sub_value is None:
            raise Unauthenticated()
        # JWT 'sub' is a string
        return int(sub_value), payload.get("role")
    except (ValueError, TypeError):
        raise Unauthenticated()


def resolve_user(db: Session, token: Optional[str]) -> User:
    """
    Load the active user behind a token

    Raises:
        Unauthenticated: bad token or the user no longer exists
        AccountInactive: the user exists but is deactivated
    """
    user_id, _ = verify_credential(token)
    user = db.get(User, user_id)
    if user is None:
        raise Unauthenticated("User not found")
    if not user.is_active:
        raise AccountInactive()
    return user


def resolve_identity(db: Session, token: Optional[str]) -> IdentityContext:
    user = resolve_user(db, token)
    return IdentityContext(user_id=user.id, role=enum_to_str(user.role), department_id=user.department_id)


def login(db: Session, username: str, password: str) -> str:
    """
    Check a username/password pair and issue an access token

    Raises:
        Unauthenticated: unknown user or wrong password (same message for both)
        AccountInactive: correct password on a deactivated account
    """
    user = db.query(User).filter(User.username == username).first()
    if not user or not verify_password(password, user.password_hash):
        raise Unauthenticated("Invalid username or password")
    if not user.is_active:
        raise AccountInactive()

    user.last_login = now_utc()
    db.commit()

    token = create_access_token(data={"sub": str(user.id), "username": user.username, "role": enum_to_str(user.role)})
    log_audit_best_effort(
        db,
        actor_id=user.id,
        action="AUTH_LOGIN_SUCCESS",
        entity_type="user",
        entity_id=user.id,
        details=f"User logged in: {user.username}",
    )
    logger.info("login user_id=%s", user.id)
    return token
