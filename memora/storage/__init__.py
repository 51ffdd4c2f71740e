"""
Storage layer.

- AuthStore: narrow interface consumed by the auth core
- SqlAuthStore: SQLAlchemy implementation
- Database: engine + session factory
"""

from memora.storage.base import AuthStore
from memora.storage.database import Database
from memora.storage.sql import SqlAuthStore, to_user_with_access

__all__ = [
    "AuthStore",
    "Database",
    "SqlAuthStore",
    "to_user_with_access",
]
