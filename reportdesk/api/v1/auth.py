"""
Authentication endpoints
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from reportdesk.core.config import settings
from reportdesk.core.deps import get_db
from reportdesk.core.errors import Forbidden
from reportdesk.schemas.auth import LoginRequest, TokenResponse, RegisterResponse
from reportdesk.schemas.user import RegisterRequest
from reportdesk.services.identity_service import login
from reportdesk.services.user_service import register_user

router = APIRouter()


@router.post("/login", response_model=TokenResponse)
async def login_endpoint(
    login_data: LoginRequest,
    db: Session = Depends(get_db)
):
    """
    Authenticate user and return JWT token

    Rejects unknown users and wrong passwords with 401, inactive accounts with 403.
    Updates last_login on success.
    """
    access_token = login(db, login_data.username, login_data.password)
    return TokenResponse(access_token=access_token, token_type="bearer")


@router.post("/register", response_model=RegisterResponse, status_code=201)
async def register_endpoint(
    register_data: RegisterRequest,
    db: Session = Depends(get_db)
):
    """Self registration; creates a STAFF account"""
    if not settings.ALLOW_SELF_REGISTRATION:
        raise Forbidden("Self registration is disabled")
    user = register_user(db, register_data)
    return RegisterResponse(id=user.id)
