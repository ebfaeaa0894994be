"""
Database session and engine.
"""
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from tripmail.config import settings
from tripmail.db.base import Base

# SQLite (local dev, tests) does not take the QueuePool sizing arguments.
if settings.database_url.startswith("sqlite"):
    _engine_kwargs = {"connect_args": {"check_same_thread": False}}
else:
    _engine_kwargs = {
        "pool_size": 8,
        "max_overflow": 10,
        "pool_recycle": 300,
        "pool_timeout": 30,
    }

engine = create_engine(settings.database_url, pool_pre_ping=True, **_engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
