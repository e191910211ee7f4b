"""
Document Store Module - Student360 School Notes System

This module provides the hierarchical document store the application persists
to. Documents live at slash-separated paths made of alternating collection and
document segments, for example:

    schools/{schoolId}
    schools/{schoolId}/students/{studentId}
    schools/{schoolId}/students/{studentId}/notes/{noteId}
    users/{uid}

Documents are stored as JSON in a single SQLite table. Connections are
thread-local, writes are committed per call, and grouped writes go through
a WriteBatch that commits inside one transaction.

Features:
- get / set (with merge) / add with generated document IDs
- Collection queries ordered by a document field with a limit
- Atomic write batches
- Server-assigned timestamps through the SERVER_TIMESTAMP sentinel
"""

import sqlite3
import logging
import json
import os
import secrets
import string
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, List, Any, Optional, Tuple

AUTO_ID_LENGTH = 20
_AUTO_ID_ALPHABET = string.ascii_letters + string.digits


class StoreError(Exception):
    """Raised for malformed paths or failed store operations."""


class _ServerTimestamp:
    """Sentinel replaced with the store's clock when a document is written."""

    def __repr__(self):
        return 'SERVER_TIMESTAMP'


SERVER_TIMESTAMP = _ServerTimestamp()


def _split_path(path: str) -> List[str]:
    segments = [segment for segment in str(path or '').strip('/').split('/')]
    if not segments or any(not segment for segment in segments):
        raise StoreError(f"Invalid path: {path!r}")
    return segments


def document_path(*segments: str) -> str:
    """Join segments into a document path (even number of segments)."""
    path = '/'.join(str(segment) for segment in segments)
    if len(_split_path(path)) % 2 != 0:
        raise StoreError(f"Not a document path: {path!r}")
    return path


def collection_path(*segments: str) -> str:
    """Join segments into a collection path (odd number of segments)."""
    path = '/'.join(str(segment) for segment in segments)
    if len(_split_path(path)) % 2 != 1:
        raise StoreError(f"Not a collection path: {path!r}")
    return path


def _parent_and_id(path: str) -> Tuple[str, str]:
    segments = _split_path(path)
    if len(segments) % 2 != 0:
        raise StoreError(f"Not a document path: {path!r}")
    return '/'.join(segments[:-1]), segments[-1]


def _resolve_sentinels(data: Dict[str, Any], now: str) -> Dict[str, Any]:
    resolved = {}
    for key, value in data.items():
        if value is SERVER_TIMESTAMP:
            resolved[key] = now
        elif isinstance(value, dict):
            resolved[key] = _resolve_sentinels(value, now)
        else:
            resolved[key] = value
    return resolved


def _merge(existing: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(existing)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class WriteBatch:
    """
    Group of set() writes committed atomically by DocumentStore.batch().
    """

    def __init__(self):
        self._writes = []

    def set(self, path: str, data: Dict[str, Any], merge: bool = False) -> 'WriteBatch':
        _parent_and_id(path)
        self._writes.append((path, data, merge))
        return self

    def __len__(self):
        return len(self._writes)


class DocumentStore:
    """
    SQLite-backed hierarchical document store.
    """

    def __init__(self, db_path):
        """
        Initialize the store with the specified database path.

        Args:
            db_path (str): Path to the SQLite database file, or ':memory:'
        """
        self.db_path = str(db_path)
        self.logger = logging.getLogger(__name__)
        self._local = threading.local()
        self._clock = lambda: datetime.now().isoformat(timespec='microseconds')

        if self.db_path != ':memory:':
            directory = os.path.dirname(self.db_path)
            if directory:
                os.makedirs(directory, exist_ok=True)

        self.initialize_database()

    @contextmanager
    def get_connection(self):
        """
        Context manager for thread-local database connections.

        Yields:
            sqlite3.Connection: Database connection object
        """
        if not hasattr(self._local, 'connection'):
            self._local.connection = sqlite3.connect(
                self.db_path,
                check_same_thread=False,
                timeout=30.0
            )
            self._local.connection.row_factory = sqlite3.Row

        try:
            yield self._local.connection
        except Exception as e:
            self._local.connection.rollback()
            self.logger.error(f"Database operation failed: {str(e)}")
            raise

    def initialize_database(self):
        """
        Create the documents table. Idempotent.
        """
        try:
            with self.get_connection() as conn:
                conn.execute("""
                    CREATE TABLE IF NOT EXISTS documents (
                        seq INTEGER PRIMARY KEY AUTOINCREMENT,
                        path TEXT UNIQUE NOT NULL,
                        collection TEXT NOT NULL,
                        doc_id TEXT NOT NULL,
                        data TEXT NOT NULL,
                        written_at TEXT NOT NULL
                    )
                """)
                conn.execute("CREATE INDEX IF NOT EXISTS idx_documents_collection ON documents(collection)")
                conn.commit()
                self.logger.info("Document store initialized successfully")

        except Exception as e:
            self.logger.error(f"Failed to initialize document store: {str(e)}")
            raise

    def get(self, path: str) -> Optional[Dict[str, Any]]:
        """
        Read a single document.

        Args:
            path (str): Document path

        Returns:
            Dict[str, Any]: Document data, or None if it does not exist
        """
        _parent_and_id(path)
        with self.get_connection() as conn:
            row = conn.execute("SELECT data FROM documents WHERE path = ?", (path,)).fetchone()
        return json.loads(row['data']) if row else None

    def exists(self, path: str) -> bool:
        return self.get(path) is not None

    def set(self, path: str, data: Dict[str, Any], merge: bool = False):
        """
        Write a document, replacing it unless merge is requested.

        Args:
            path (str): Document path
            data (Dict[str, Any]): Document fields
            merge (bool): Merge into the existing document instead of replacing it
        """
        with self.get_connection() as conn:
            self._write(conn, path, data, merge)
            conn.commit()

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        """
        Create a document with a generated ID in a collection.

        Args:
            collection (str): Collection path
            data (Dict[str, Any]): Document fields

        Returns:
            str: Generated document ID
        """
        collection = collection_path(collection)
        doc_id = ''.join(secrets.choice(_AUTO_ID_ALPHABET) for _ in range(AUTO_ID_LENGTH))
        self.set(f"{collection}/{doc_id}", data)
        return doc_id

    def query(self, collection: str, order_by: str = None, descending: bool = False,
              limit: int = None) -> List[Tuple[str, Dict[str, Any]]]:
        """
        List documents of one collection.

        Args:
            collection (str): Collection path
            order_by (str): Top-level field to order by
            descending (bool): Order direction
            limit (int): Maximum number of documents

        Returns:
            List[Tuple[str, Dict[str, Any]]]: (document ID, data) pairs
        """
        collection = collection_path(collection)
        direction = 'DESC' if descending else 'ASC'
        sql = "SELECT doc_id, data FROM documents WHERE collection = ?"
        params: List[Any] = [collection]

        if order_by:
            if not order_by.replace('_', '').isalnum():
                raise StoreError(f"Invalid order field: {order_by!r}")
            sql += f" ORDER BY json_extract(data, '$.{order_by}') {direction}, seq {direction}"
        else:
            sql += f" ORDER BY seq {direction}"

        if limit is not None:
            sql += " LIMIT ?"
            params.append(int(limit))

        with self.get_connection() as conn:
            rows = conn.execute(sql, params).fetchall()
        return [(row['doc_id'], json.loads(row['data'])) for row in rows]

    @contextmanager
    def batch(self):
        """
        Collect writes and commit them in one transaction on exit.

        Yields:
            WriteBatch: Batch to add set() operations to
        """
        write_batch = WriteBatch()
        yield write_batch

        with self.get_connection() as conn:
            try:
                for path, data, merge in write_batch._writes:
                    self._write(conn, path, data, merge)
                conn.commit()
            except Exception as e:
                conn.rollback()
                self.logger.error(f"Batch of {len(write_batch)} writes rolled back: {str(e)}")
                raise

        self.logger.info(f"Committed batch of {len(write_batch)} writes")

    def _write(self, conn, path: str, data: Dict[str, Any], merge: bool):
        parent, doc_id = _parent_and_id(path)
        now = self._clock()
        document = _resolve_sentinels(data, now)

        if merge:
            row = conn.execute("SELECT data FROM documents WHERE path = ?", (path,)).fetchone()
            if row:
                document = _merge(json.loads(row['data']), document)

        conn.execute(
            """INSERT INTO documents (path, collection, doc_id, data, written_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(path) DO UPDATE SET data = excluded.data, written_at = excluded.written_at""",
            (path, parent, doc_id, json.dumps(document, ensure_ascii=False), now)
        )

    def close_all_connections(self):
        """Close the current thread's connection."""
        try:
            if hasattr(self._local, 'connection'):
                self._local.connection.close()
                del self._local.connection
        except Exception as e:
            self.logger.error(f"Error closing connections: {str(e)}")
