"""Database setup and session management.

SQLAlchemy + SQLite unless DATABASE_URL says otherwise.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from content_variants.config import settings


def _connect_args(url: str) -> dict:
    if "sqlite" in url:
        return {"check_same_thread": False, "timeout": settings.database_timeout}
    return {}


engine = create_engine(
    settings.database_url,
    connect_args=_connect_args(settings.database_url)
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """Dependency for getting DB session (FastAPI Depends)."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db():
    """Initialize database tables (create_all)."""
    Base.metadata.create_all(bind=engine)
