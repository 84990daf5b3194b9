"""
SQLite plumbing for the persistent key-value backend.
"""

import sqlite3
from contextlib import contextmanager
from typing import Generator
from .config import DB_PATH, ensure_db_directory

@contextmanager
def get_db(db_path: str = None) -> Generator[sqlite3.Connection, None, None]:
    """Get a SQLite database connection."""
    conn = sqlite3.connect(db_path or DB_PATH)
    try:
        yield conn
    finally:
        conn.close()

def init_db(db_path: str = None):
    """Initialize the database with the key-value table."""
    db_path = db_path or DB_PATH
    if db_path != ":memory:":
        ensure_db_directory(db_path)

    with get_db(db_path) as conn:
        cursor = conn.cursor()

        # One row per collection; value holds the serialized (optionally encrypted) array
        cursor.execute('''
            CREATE TABLE IF NOT EXISTS kv_store (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL,
                updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        ''')

        conn.commit()

def health_check(db_path: str = None):
    """Check database health."""
    try:
        with get_db(db_path) as conn:
            cursor = conn.cursor()
            cursor.execute("SELECT name FROM sqlite_master WHERE type='table';")
            tables = cursor.fetchall()

            table_names = [table[0] for table in tables]
            return 'kv_store' in table_names
    except sqlite3.Error:
        return False
