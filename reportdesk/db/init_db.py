"""
Database initialization helpers
"""
import logging
from sqlalchemy.orm import Session
from reportdesk.core.config import settings
from reportdesk.core.security import hash_password
from reportdesk.models.user import User, Role

logger = logging.getLogger(__name__)


def bootstrap_initial_admin(db: Session) -> bool:
    """
    Create the initial ADMIN user if no ADMIN exists

    Credentials come from INITIAL_ADMIN_USERNAME / INITIAL_ADMIN_EMAIL /
    INITIAL_ADMIN_PASSWORD.

    Returns:
        True if an admin was created
    """
    if db.query(User.id).filter(User.role == Role.ADMIN.value).first():
        logger.info("Admin user already exists, skipping initial bootstrap")
        return False

    taken = db.query(User.id).filter(
        (User.username == settings.INITIAL_ADMIN_USERNAME) | (User.email == settings.INITIAL_ADMIN_EMAIL)
    ).first()
    if taken:
        logger.warning("Initial admin username/email already used by a non-admin account, skipping bootstrap")
        return False

    admin = User(
        username=settings.INITIAL_ADMIN_USERNAME,
        email=settings.INITIAL_ADMIN_EMAIL,
        name="System Administrator",
        password_hash=hash_password(settings.INITIAL_ADMIN_PASSWORD),
        role=Role.ADMIN.value,
        is_active=True,
    )
    db.add(admin)
    db.commit()
    logger.info("Initial admin user created: username=%s", admin.username)
    logger.info("Password: [set via INITIAL_ADMIN_PASSWORD environment variable]")
    return True
