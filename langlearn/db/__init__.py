"""Local persistence: SQLAlchemy models and the LocalDatabase context."""

from langlearn.db.database import LocalDatabase

__all__ = ["LocalDatabase"]
