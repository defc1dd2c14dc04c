"""Database package."""

from designhub.db.base import Base, BaseModel, JSONType
from designhub.db.session import get_db_session, get_session_factory

__all__ = ["Base", "BaseModel", "JSONType", "get_db_session", "get_session_factory"]
