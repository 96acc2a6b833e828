"""
Dependencies for FastAPI endpoints
"""
from typing import Generator, Optional
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from reportdesk.db.session import SessionLocal
from reportdesk.models.user import User
from reportdesk.services.file_store import FileStore, LocalFileStore
from reportdesk.services.identity_service import resolve_user


# auto_error=False so a missing header goes through our 401 (not FastAPI's 403)
security = HTTPBearer(auto_error=False)


def get_db() -> Generator:
    """Dependency for getting database session"""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_file_store() -> FileStore:
    """Dependency for the report file store"""
    return LocalFileStore()


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """
    Get current authenticated user from the bearer token

    401 for a missing/invalid token or a deleted user, 403 for an inactive account.
    """
    token = credentials.credentials if credentials else None
    return resolve_user(db, token)
