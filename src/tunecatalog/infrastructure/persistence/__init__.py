"""Persistence layer: SQLAlchemy async engine, ORM models and the catalog."""

from .database import Database
from .repositories import SqlCatalog
from .retry import with_db_retry

__all__ = ["Database", "SqlCatalog", "with_db_retry"]
