import logging
import os
import sqlite3

from twostep.core.config import database_path

logger = logging.getLogger(__name__)


def setup_database(path: str = None):
    """Create the credential tables if they do not exist yet."""
    path = path or database_path()

    # Make sure the directory exists
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)

    conn = sqlite3.connect(path)
    cursor = conn.cursor()

    # One row per user: encoded secret and its time-0 verification code
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS users (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        username TEXT NOT NULL UNIQUE,
        secret_key TEXT NOT NULL,
        verification_code INTEGER NOT NULL,
        created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
    )
    ''')

    # Scratch codes, each usable once
    cursor.execute('''
    CREATE TABLE IF NOT EXISTS scratch_codes (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id INTEGER NOT NULL,
        code INTEGER NOT NULL,
        used BOOLEAN NOT NULL DEFAULT 0,
        used_at TIMESTAMP,
        FOREIGN KEY (user_id) REFERENCES users (id) ON DELETE CASCADE
    )
    ''')

    conn.commit()
    conn.close()
    logger.info("Database setup completed at %s", path)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    setup_database()
