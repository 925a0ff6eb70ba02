"""Database package."""

from flowbit.database.base import Base
from flowbit.database.session import engine, SessionLocal, get_db

__all__ = ["Base", "engine", "SessionLocal", "get_db"]
