"""
SQLAlchemy engine, session factory and declarative base.
"""

from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from weekplan.config import get_settings

settings = get_settings()

engine_args = {"pool_pre_ping": True}

if settings.database_url.startswith("sqlite"):
    engine_args["connect_args"] = {"check_same_thread": False}

engine = create_engine(settings.database_url, **engine_args)

SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)

Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: yields a Session and closes it after use."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
