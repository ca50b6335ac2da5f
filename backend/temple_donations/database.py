"""
Database Engine & Session Management
SQLAlchemy setup with dependency injection for FastAPI.
"""
import os
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from temple_donations.config import get_settings

settings = get_settings()

# Ensure data directory exists
if settings.DATABASE_URL.startswith("sqlite:///"):
    os.makedirs(os.path.dirname(settings.DATABASE_URL.replace("sqlite:///", "")) or ".", exist_ok=True)

engine = create_engine(
    settings.DATABASE_URL,
    connect_args={"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {},
    echo=settings.DEBUG,
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    """FastAPI dependency: yields a database session, auto-closes on finish."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db(bind=None):
    """Create all tables. Called once at application startup."""
    from temple_donations.models import donation as _donation_model   # noqa: F401
    from temple_donations.models import catalog as _catalog_model     # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
