"""
Database module for the hold'em table service.

Stores each table's GameState as an opaque JSON blob next to a version number,
plus an append-only log of accepted actions. Uses SQLite for simplicity and
reliability.
"""

import sqlite3
import logging
import time
import uuid
from typing import Optional, List, Dict, Any
from pathlib import Path
from contextlib import contextmanager
import threading

from holdem.errors import StaleStateError, TableNotFoundError


class DatabaseManager:
    """Manages SQLite database operations for the table service."""

    def __init__(self, db_path: str = "holdem_data.db"):
        self.db_path = Path(db_path).resolve()
        self._local = threading.local()
        self._init_database()

    def _get_connection(self) -> sqlite3.Connection:
        """Get a thread-local database connection."""
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row
            self._local.connection.execute("PRAGMA foreign_keys = ON")
            self._local.connection.execute("PRAGMA journal_mode = WAL")
        return self._local.connection

    @contextmanager
    def get_cursor(self):
        """Get a database cursor with automatic commit/rollback."""
        conn = self._get_connection()
        cursor = conn.cursor()
        try:
            yield cursor
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            cursor.close()

    def _init_database(self):
        """Initialize database tables."""
        with self.get_cursor() as cursor:
            # One row per poker table; game_state is the serialised GameState
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS poker_tables (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    small_blind INTEGER NOT NULL,
                    big_blind INTEGER NOT NULL,
                    max_players INTEGER NOT NULL,
                    status TEXT NOT NULL DEFAULT 'waiting',
                    game_state TEXT NOT NULL,
                    version INTEGER NOT NULL DEFAULT 0,
                    created_at REAL NOT NULL,
                    updated_at REAL NOT NULL
                )
            """)

            # Audit log of every accepted action
            cursor.execute("""
                CREATE TABLE IF NOT EXISTS table_actions (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    table_id TEXT NOT NULL,
                    hand_number INTEGER NOT NULL DEFAULT 0,
                    player_id TEXT,
                    action_type TEXT NOT NULL,
                    amount INTEGER DEFAULT 0,
                    game_phase TEXT,
                    details TEXT,
                    timestamp REAL NOT NULL,
                    FOREIGN KEY (table_id) REFERENCES poker_tables (id) ON DELETE CASCADE
                )
            """)

            cursor.execute("CREATE INDEX IF NOT EXISTS idx_table_actions_table ON table_actions (table_id)")
            cursor.execute("CREATE INDEX IF NOT EXISTS idx_poker_tables_status ON poker_tables (status)")

        logging.info(f"Database initialized at {self.db_path}")

    def close(self):
        if hasattr(self._local, 'connection'):
            self._local.connection.close()
            del self._local.connection

    def create_table(self, name: str, small_blind: int, big_blind: int, max_players: int,
                     game_state: str, version: int = 0, status: str = 'waiting') -> Dict[str, Any]:
        """Insert a new table and return its row."""
        table_id = uuid.uuid4().hex
        now = time.time()
        with self.get_cursor() as cursor:
            cursor.execute("""
                INSERT INTO poker_tables
                (id, name, small_blind, big_blind, max_players, status, game_state, version,
                 created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """, (table_id, name, small_blind, big_blind, max_players, status, game_state,
                  version, now, now))
        logging.info(f"Created table {table_id} ({name})")
        return self.get_table(table_id)

    def get_table(self, table_id: str) -> Dict[str, Any]:
        """Get a table row; raises TableNotFoundError if there is none."""
        with self.get_cursor() as cursor:
            cursor.execute("SELECT * FROM poker_tables WHERE id = ?", (table_id,))
            row = cursor.fetchone()
        if row is None:
            raise TableNotFoundError(f"Table {table_id} not found")
        return dict(row)

    def list_tables(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """List tables without their game state, newest first."""
        with self.get_cursor() as cursor:
            query = """
                SELECT id, name, small_blind, big_blind, max_players, status, version,
                       created_at, updated_at
                FROM poker_tables
            """
            if status:
                cursor.execute(query + " WHERE status = ? ORDER BY created_at DESC", (status,))
            else:
                cursor.execute(query + " ORDER BY created_at DESC")
            return [dict(row) for row in cursor.fetchall()]

    def update_game_state(self, table_id: str, game_state: str, expected_version: int,
                          new_version: int, status: Optional[str] = None) -> None:
        """Replace a table's state if it is still at ``expected_version``.

        Raises StaleStateError when somebody else wrote first.
        """
        with self.get_cursor() as cursor:
            cursor.execute("""
                UPDATE poker_tables
                SET game_state = ?, version = ?, status = COALESCE(?, status), updated_at = ?
                WHERE id = ? AND version = ?
            """, (game_state, new_version, status, time.time(), table_id, expected_version))
            updated = cursor.rowcount

        if updated == 0:
            current = self.get_table(table_id)
            raise StaleStateError(
                f"Table {table_id} is at version {current['version']}, not {expected_version}")

    def delete_table(self, table_id: str) -> bool:
        with self.get_cursor() as cursor:
            cursor.execute("DELETE FROM table_actions WHERE table_id = ?", (table_id,))
            cursor.execute("DELETE FROM poker_tables WHERE id = ?", (table_id,))
            deleted = cursor.rowcount > 0
        if deleted:
            logging.info(f"Deleted table {table_id}")
        return deleted

    def log_action(self, table_id: str, action_type: str, player_id: Optional[str] = None,
                   amount: int = 0, hand_number: int = 0, game_phase: Optional[str] = None,
                   details: Optional[str] = None) -> int:
        """Log a table action."""
        with self.get_cursor() as cursor:
            cursor.execute("""
                INSERT INTO table_actions
                (table_id, hand_number, player_id, action_type, amount, game_phase, details, timestamp)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """, (table_id, hand_number, player_id, action_type, amount, game_phase,
                  details, time.time()))

            return cursor.lastrowid or 0

    def get_actions(self, table_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        """Get the most recent actions at a table, oldest first."""
        with self.get_cursor() as cursor:
            cursor.execute("""
                SELECT * FROM table_actions
                WHERE table_id = ?
                ORDER BY id DESC
                LIMIT ?
            """, (table_id, limit))

            return [dict(row) for row in reversed(cursor.fetchall())]

    def get_database_stats(self) -> Dict[str, Any]:
        """Get database statistics."""
        with self.get_cursor() as cursor:
            stats = {}

            cursor.execute("SELECT COUNT(*) as count FROM poker_tables")
            stats['total_tables'] = cursor.fetchone()['count']

            cursor.execute("SELECT COUNT(*) as count FROM poker_tables WHERE status = 'playing'")
            stats['active_tables'] = cursor.fetchone()['count']

            cursor.execute("SELECT COUNT(*) as count FROM table_actions")
            stats['total_actions'] = cursor.fetchone()['count']

            return stats


# Global database instance
_db_manager: Optional[DatabaseManager] = None


def get_database() -> DatabaseManager:
    """Get the global database manager instance."""
    global _db_manager
    if _db_manager is None:
        _db_manager = DatabaseManager()
    return _db_manager


def init_database(db_path: str = "holdem_data.db") -> DatabaseManager:
    """Initialize the global database manager."""
    global _db_manager
    _db_manager = DatabaseManager(db_path)
    return _db_manager
