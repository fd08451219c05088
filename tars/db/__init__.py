"""Database module."""

from tars.db.base import Base
from tars.db.session import dispose_engine, get_engine, get_session_factory

__all__ = ["Base", "dispose_engine", "get_engine", "get_session_factory"]
