from tripmail.db.base import Base
from tripmail.db.session import get_db, engine, SessionLocal
from tripmail.db.tables import ALL_TABLE_NAMES

__all__ = ["get_db", "engine", "SessionLocal", "Base", "ALL_TABLE_NAMES"]
