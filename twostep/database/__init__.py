"""SQLite storage of user credentials (secret key, verification code, scratch codes)."""

from .db_manager import SqliteCredentialRepository
from .setup_database import setup_database

__all__ = ["SqliteCredentialRepository", "setup_database"]
