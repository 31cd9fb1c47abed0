import logging
import sqlite3
from datetime import datetime
from typing import List, Optional, Sequence

from twostep.core.config import database_path
from twostep.core.repository import CredentialRepository

from .setup_database import setup_database

logger = logging.getLogger(__name__)


class SqliteCredentialRepository(CredentialRepository):
    """Credential repository backed by a SQLite file.

    A new connection is opened for every call, so one instance can be shared
    between threads. Single use of scratch codes is enforced here.
    """

    def __init__(self, path: str = None):
        self.path = path or database_path()
        setup_database(self.path)

    def get_db_connection(self):
        """Connect to the database"""
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row  # rows behave like dictionaries
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def _insert_scratch_codes(self, conn, user_id, scratch_codes):
        conn.execute("DELETE FROM scratch_codes WHERE user_id = ?", (user_id,))
        conn.executemany(
            "INSERT INTO scratch_codes (user_id, code) VALUES (?, ?)",
            [(user_id, code) for code in scratch_codes]
        )

    def save_user_credentials(
        self,
        user_name: str,
        secret_key: str,
        verification_code: int,
        scratch_codes: Sequence[int],
    ) -> None:
        """Insert or replace the credentials of a user, scratch codes included."""
        conn = self.get_db_connection()
        try:
            with conn:
                conn.execute(
                    """INSERT INTO users (username, secret_key, verification_code)
                       VALUES (?, ?, ?)
                       ON CONFLICT(username) DO UPDATE SET
                           secret_key = excluded.secret_key,
                           verification_code = excluded.verification_code""",
                    (user_name, secret_key, verification_code)
                )
                user_id = conn.execute(
                    "SELECT id FROM users WHERE username = ?", (user_name,)
                ).fetchone()['id']
                self._insert_scratch_codes(conn, user_id, scratch_codes)
            logger.info("Saved credentials for user '%s'", user_name)
        finally:
            conn.close()

    def add_user_credentials(
        self,
        user_name: str,
        secret_key: str,
        verification_code: int,
        scratch_codes: Sequence[int],
    ) -> bool:
        """Insert a new user. False if the username is already taken."""
        conn = self.get_db_connection()
        try:
            with conn:
                cursor = conn.execute(
                    """INSERT INTO users (username, secret_key, verification_code)
                       VALUES (?, ?, ?)""",
                    (user_name, secret_key, verification_code)
                )
                self._insert_scratch_codes(conn, cursor.lastrowid, scratch_codes)
        except sqlite3.IntegrityError:
            logger.info("User '%s' already exists.", user_name)
            return False
        finally:
            conn.close()

        logger.info("Added user '%s'", user_name)
        return True

    def get_secret_key(self, user_name: str) -> Optional[str]:
        """Encoded secret key of a user, None if the user is unknown."""
        conn = self.get_db_connection()
        try:
            result = conn.execute(
                "SELECT secret_key FROM users WHERE username = ?", (user_name,)
            ).fetchone()
        finally:
            conn.close()

        if result:
            return result['secret_key']

        logger.info("User '%s' not found in the database.", user_name)
        return None

    def get_scratch_codes(self, user_name: str) -> List[int]:
        """Unused scratch codes of a user."""
        conn = self.get_db_connection()
        try:
            rows = conn.execute(
                """SELECT s.code FROM scratch_codes s
                   JOIN users u ON u.id = s.user_id
                   WHERE u.username = ? AND s.used = 0
                   ORDER BY s.id""",
                (user_name,)
            ).fetchall()
        finally:
            conn.close()
        return [row['code'] for row in rows]

    def use_scratch_code(self, user_name: str, code: int) -> bool:
        """Mark a scratch code as used. False if it is unknown or already used."""
        conn = self.get_db_connection()
        try:
            with conn:
                cursor = conn.execute(
                    """UPDATE scratch_codes SET used = 1, used_at = ?
                       WHERE id = (
                           SELECT s.id FROM scratch_codes s
                           JOIN users u ON u.id = s.user_id
                           WHERE s.used = 0 AND s.code = ? AND u.username = ?
                           LIMIT 1)""",
                    (datetime.now().strftime('%Y-%m-%d %H:%M:%S'), code, user_name)
                )
                used = cursor.rowcount
        finally:
            conn.close()

        if used:
            logger.info("Scratch code used by user '%s'", user_name)
            return True
        return False
