"""
store.py
~~~~~~~~

Artifact stores backing the model registry.

A store maps an identity string to an opaque serialized artifact. Stores
never overwrite: writing an identity twice raises ArtifactExistsError, so a
lost race on version allocation can't silently replace a model.
"""

import os
import sqlite3
import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Dict, Generator, List, Optional

from neuraldeep.errors import ArtifactExistsError
from neuraldeep.naming import parse_identity

logger = logging.getLogger(__name__)


class ArtifactStore(ABC):
    """Interface for persisting serialized model artifacts."""

    @abstractmethod
    def put(self, identity: str, payload: bytes) -> None:
        """Store ``payload`` under a new identity."""

    @abstractmethod
    def get(self, identity: str) -> Optional[bytes]:
        """Return the payload for ``identity`` or None."""

    @abstractmethod
    def identities(self, base_name: Optional[str] = None) -> List[str]:
        """List stored identities, optionally only those under ``base_name``."""

    @abstractmethod
    def delete(self, identity: str) -> bool:
        """Remove an artifact; return False if it did not exist."""


class InMemoryArtifactStore(ArtifactStore):
    """Dictionary-backed store, mainly for tests."""

    def __init__(self):
        self._artifacts: Dict[str, bytes] = {}
        self._lock = threading.Lock()

    def put(self, identity: str, payload: bytes) -> None:
        with self._lock:
            if identity in self._artifacts:
                raise ArtifactExistsError(identity)
            self._artifacts[identity] = bytes(payload)

    def get(self, identity: str) -> Optional[bytes]:
        with self._lock:
            return self._artifacts.get(identity)

    def identities(self, base_name: Optional[str] = None) -> List[str]:
        with self._lock:
            names = list(self._artifacts)
        if base_name is None:
            return names
        return [name for name in names if parse_identity(name)[0] == base_name]

    def delete(self, identity: str) -> bool:
        with self._lock:
            return self._artifacts.pop(identity, None) is not None

    def __len__(self) -> int:
        return len(self._artifacts)


class SQLiteArtifactStore(ArtifactStore):
    """
    Manages a SQLite database of serialized model artifacts.

    The database stores:
    - The identity split into base name and version for listing
    - The serialized artifact as a binary blob
    - The creation timestamp
    """

    def __init__(self, db_path: str = 'models/artifacts.db'):
        """
        Initialize the database connection.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = db_path
        self._ensure_directory()
        self._initialize_schema()

    def _ensure_directory(self) -> None:
        """Create the database directory if it doesn't exist."""
        db_dir = os.path.dirname(self.db_path)
        if db_dir and not os.path.exists(db_dir):
            os.makedirs(db_dir, exist_ok=True)

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Context manager for database connections.

        Yields:
            sqlite3.Connection: Database connection
        """
        conn = sqlite3.connect(self.db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _initialize_schema(self) -> None:
        """Create the database schema if it doesn't exist."""
        with self._get_connection() as conn:
            cursor = conn.cursor()
            cursor.execute('''
                CREATE TABLE IF NOT EXISTS artifacts (
                    identity TEXT PRIMARY KEY,
                    base_name TEXT NOT NULL,
                    version INTEGER NOT NULL,
                    payload BLOB NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                )
            ''')

            cursor.execute('''
                CREATE INDEX IF NOT EXISTS idx_base_name
                ON artifacts(base_name, version)
            ''')

    def put(self, identity: str, payload: bytes) -> None:
        base_name, version = parse_identity(identity)
        try:
            with self._get_connection() as conn:
                conn.execute('''
                    INSERT INTO artifacts (identity, base_name, version, payload)
                    VALUES (?, ?, ?, ?)
                ''', (identity, base_name, version, sqlite3.Binary(payload)))
        except sqlite3.IntegrityError:
            logger.warning(f"Refused to overwrite artifact '{identity}'")
            raise ArtifactExistsError(identity)
        except sqlite3.Error as e:
            logger.error(f"Database error saving artifact '{identity}': {e}")
            raise

        logger.info(f"Saved artifact '{identity}' ({len(payload)} bytes)")

    def get(self, identity: str) -> Optional[bytes]:
        try:
            with self._get_connection() as conn:
                row = conn.execute(
                    'SELECT payload FROM artifacts WHERE identity = ?',
                    (identity,)
                ).fetchone()
        except sqlite3.Error as e:
            logger.error(f"Database error loading artifact '{identity}': {e}")
            raise

        if row is None:
            logger.warning(f"Artifact '{identity}' not found")
            return None
        logger.debug(f"Loaded artifact '{identity}'")
        return bytes(row['payload'])

    def identities(self, base_name: Optional[str] = None) -> List[str]:
        try:
            with self._get_connection() as conn:
                if base_name is None:
                    rows = conn.execute(
                        'SELECT identity FROM artifacts ORDER BY base_name, version'
                    ).fetchall()
                else:
                    rows = conn.execute(
                        'SELECT identity FROM artifacts WHERE base_name = ? '
                        'ORDER BY version',
                        (base_name,)
                    ).fetchall()
        except sqlite3.Error as e:
            logger.error(f"Database error listing artifacts: {e}")
            raise

        return [row['identity'] for row in rows]

    def delete(self, identity: str) -> bool:
        try:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    'DELETE FROM artifacts WHERE identity = ?',
                    (identity,)
                )
                deleted = cursor.rowcount > 0
        except sqlite3.Error as e:
            logger.error(f"Database error deleting artifact '{identity}': {e}")
            raise

        if deleted:
            logger.info(f"Deleted artifact '{identity}'")
        else:
            logger.warning(f"Could not delete artifact '{identity}': not found")
        return deleted
