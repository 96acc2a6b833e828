"""
Tests for authentication and identity resolution
"""
import pytest
from fastapi import status

from reportdesk.core.config import settings
from reportdesk.core.errors import AccountInactive, Unauthenticated
from reportdesk.core.security import create_access_token
from reportdesk.models import AuditLog, Role, User
from reportdesk.services.identity_service import resolve_identity, verify_credential
from reportdesk.tests.factories import auth_headers, make_user


def test_login_success(client, db, staff_user):
    response = client.post("/api/v1/auth/login", json={"username": "alice", "password": "password123"})

    assert response.status_code == status.HTTP_200_OK
    data = response.json()
    assert data["token_type"] == "bearer"
    assert data["access_token"]

    db.refresh(staff_user)
    assert staff_user.last_login is not None
    assert db.query(AuditLog).filter(AuditLog.action == "AUTH_LOGIN_SUCCESS", AuditLog.actor_id == staff_user.id).count() == 1


def test_login_wrong_password(client, staff_user):
    response = client.post("/api/v1/auth/login", json={"username": "alice", "password": "wrongpass1"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "UNAUTHENTICATED"


def test_login_unknown_user(client):
    response = client.post("/api/v1/auth/login", json={"username": "nobody", "password": "password123"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_login_inactive_account(client, db, department):
    make_user(db, "ivan", Role.STAFF, department_id=department.id, is_active=False)
    response = client.post("/api/v1/auth/login", json={"username": "ivan", "password": "password123"})
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "ACCOUNT_INACTIVE"


def test_missing_token_is_unauthenticated(client):
    response = client.get("/api/v1/users/me")
    assert response.status_code == status.HTTP_401_UNAUTHORIZED
    assert response.json()["code"] == "UNAUTHENTICATED"


def test_garbage_token_is_unauthenticated(client):
    response = client.get("/api/v1/users/me", headers={"Authorization": "Bearer not-a-jwt"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_me_returns_profile_without_hash(client, staff_user):
    response = client.get("/api/v1/users/me", headers=auth_headers(client, "alice"))
    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "alice"
    assert data["role"] == "STAFF"
    assert "password_hash" not in data


def test_deactivation_applies_to_issued_tokens(client, db, staff_user):
    headers = auth_headers(client, "alice")
    staff_user.is_active = False
    db.commit()

    response = client.get("/api/v1/users/me", headers=headers)
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "ACCOUNT_INACTIVE"


def test_role_change_applies_without_new_token(client, db, staff_user):
    headers = auth_headers(client, "alice")
    assert client.get("/api/v1/audit-logs", headers=headers).status_code == status.HTTP_403_FORBIDDEN

    staff_user.role = Role.ADMIN.value
    db.commit()
    assert client.get("/api/v1/audit-logs", headers=headers).status_code == status.HTTP_200_OK


def test_verify_credential_rejects_missing_and_bad_tokens():
    with pytest.raises(Unauthenticated):
        verify_credential(None)
    with pytest.raises(Unauthenticated):
        verify_credential("abc.def.ghi")
    with pytest.raises(Unauthenticated):
        verify_credential(create_access_token({"role": "ADMIN"}))


def test_resolve_identity_uses_stored_role(db, staff_user):
    token = create_access_token({"sub": str(staff_user.id), "role": "ADMIN"})
    identity = resolve_identity(db, token)
    assert identity.user_id == staff_user.id
    assert identity.role == "STAFF"


def test_resolve_identity_deleted_user(db):
    token = create_access_token({"sub": "9999"})
    with pytest.raises(Unauthenticated):
        resolve_identity(db, token)


def test_resolve_identity_inactive_user(db, department):
    user = make_user(db, "ivan", Role.STAFF, is_active=False)
    token = create_access_token({"sub": str(user.id)})
    with pytest.raises(AccountInactive):
        resolve_identity(db, token)


def test_register_creates_staff(client, db):
    response = client.post(
        "/api/v1/auth/register",
        json={"username": "newbie", "email": "Newbie@Example.com", "name": "New Bie", "password": "password123"},
    )
    assert response.status_code == status.HTTP_201_CREATED
    user = db.get(User, response.json()["id"])
    assert user.role == "STAFF"
    assert user.email == "newbie@example.com"
    assert user.department_id is None

    duplicate = client.post(
        "/api/v1/auth/register",
        json={"username": "newbie", "email": "other@example.com", "name": "Again", "password": "password123"},
    )
    assert duplicate.status_code == status.HTTP_409_CONFLICT
    assert duplicate.json()["code"] == "CONFLICT"


def test_register_rejects_short_password(client):
    response = client.post(
        "/api/v1/auth/register",
        json={"username": "shorty", "email": "s@example.com", "name": "S", "password": "short"},
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_register_can_be_disabled(client, monkeypatch):
    monkeypatch.setattr(settings, "ALLOW_SELF_REGISTRATION", False)
    response = client.post(
        "/api/v1/auth/register",
        json={"username": "newbie", "email": "n@example.com", "name": "N", "password": "password123"},
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
