"""
Pytest configuration and fixtures
"""
import os

# Required settings must exist before reportdesk.core.config is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-for-reportdesk-tests-0123456789")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlalchemy.engine import Engine

from reportdesk.main import app
from reportdesk.core.config import settings
from reportdesk.core.deps import get_db, get_file_store
from reportdesk.db.base import Base
from reportdesk.models import Department, User, Role  # noqa: F401  (registers all tables)
from reportdesk.services.file_store import LocalFileStore
from reportdesk.tests.factories import make_user


# Enable foreign keys for SQLite
@event.listens_for(Engine, "connect")
def set_sqlite_pragma(dbapi_conn, connection_record):
    if type(dbapi_conn).__module__.startswith("sqlite3"):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory database per test"""
    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine):
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(autouse=True)
def fast_notification_retries(monkeypatch):
    monkeypatch.setattr(settings, "NOTIFICATION_RETRY_BACKOFF_SECONDS", 0)


@pytest.fixture
def file_store(tmp_path):
    return LocalFileStore(root=str(tmp_path / "uploads"))


@pytest.fixture(scope="function")
def client(db, file_store):
    """Test client fixture with database and file store overrides"""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_file_store] = lambda: file_store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_user(db):
    return make_user(db, "admin", Role.ADMIN)


@pytest.fixture
def hr_user(db):
    return make_user(db, "harriet", Role.HR)


@pytest.fixture
def department(db):
    dept = Department(name="Engineering", description="Builds things")
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


@pytest.fixture
def other_department(db):
    dept = Department(name="Finance")
    db.add(dept)
    db.commit()
    db.refresh(dept)
    return dept


@pytest.fixture
def hod_user(db, department):
    """carol heads Engineering"""
    hod = make_user(db, "carol", Role.HOD, department_id=department.id)
    department.head_user_id = hod.id
    db.commit()
    db.refresh(department)
    return hod


@pytest.fixture
def other_hod(db, other_department):
    """dave heads Finance"""
    hod = make_user(db, "dave", Role.HOD, department_id=other_department.id)
    other_department.head_user_id = hod.id
    db.commit()
    db.refresh(other_department)
    return hod


@pytest.fixture
def staff_user(db, department):
    """alice works in Engineering"""
    return make_user(db, "alice", Role.STAFF, department_id=department.id)


@pytest.fixture
def other_staff(db, department):
    """bob works in Engineering too"""
    return make_user(db, "bob", Role.STAFF, department_id=department.id)
