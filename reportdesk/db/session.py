"""
Database session management
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from reportdesk.core.config import settings
from reportdesk.db.base import Base


def _connect_args(database_url: str) -> dict:
    """Driver-level timeouts so persistence calls fail instead of hanging"""
    timeout = settings.DB_TIMEOUT_SECONDS
    if database_url.startswith("sqlite"):
        # busy timeout: how long a writer waits for a competing transaction's lock
        return {"check_same_thread": False, "timeout": timeout}
    if database_url.startswith("postgresql"):
        return {
            "connect_timeout": int(max(timeout, 1)),
            "options": f"-c statement_timeout={int(timeout * 1000)}",
        }
    return {}


engine_kwargs = {"connect_args": _connect_args(settings.DATABASE_URL), "pool_pre_ping": True, "echo": False}
if not settings.DATABASE_URL.startswith("sqlite"):
    engine_kwargs["pool_timeout"] = settings.DB_TIMEOUT_SECONDS

engine = create_engine(settings.DATABASE_URL, **engine_kwargs)

# Create all tables automatically on startup for SQLite
if "sqlite" in settings.DATABASE_URL:
    import reportdesk.models  # noqa: F401  (register tables on Base.metadata)
    Base.metadata.create_all(bind=engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
