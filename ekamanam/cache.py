"""Result cache for OCR and vision fallback text.

Fallback engines are slow (OCR) or billed per call (vision), so their
results are kept per (document, page). Every cache operation is
best-effort: storage errors are logged and reported as a miss or a
failed write, never raised to the caller.
"""

from __future__ import annotations

import logging
import sqlite3
import threading
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from ekamanam.models import CacheEntry, FallbackEngine

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS ocr_results (
    key TEXT PRIMARY KEY,
    document_id TEXT NOT NULL,
    page_number INTEGER NOT NULL,
    text TEXT NOT NULL,
    method TEXT NOT NULL,
    timestamp TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_ocr_results_document ON ocr_results(document_id);
"""


def make_cache_key(document_id: str, page_number: int) -> str:
    """Derive the cache key for a page."""
    return f"{document_id}_page_{page_number}"


class ResultCache(ABC):
    """Interface for fallback result caches."""

    def get(self, document_id: str, page_number: int) -> str | None:
        """Return cached text for a page, or None on a miss."""
        entry = self.get_entry(document_id, page_number)
        return entry.text if entry is not None else None

    @abstractmethod
    def get_entry(self, document_id: str, page_number: int) -> CacheEntry | None:
        """Return the full cache entry for a page, or None on a miss."""

    @abstractmethod
    def put(
        self,
        document_id: str,
        page_number: int,
        text: str,
        method: FallbackEngine = "ocr",
    ) -> bool:
        """Store (or replace) the text for a page.

        Returns:
            True if the entry was written
        """

    @abstractmethod
    def clear(self, document_id: str) -> int:
        """Remove every entry of a document.

        Returns:
            Number of entries removed
        """

    @abstractmethod
    def stats(self) -> dict[str, int]:
        """Return entry and document counts."""

    def close(self) -> None:
        """Release storage resources."""


class InMemoryResultCache(ResultCache):
    """Process-lifetime cache; contents are lost on exit."""

    def __init__(self):
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()

    def get_entry(self, document_id: str, page_number: int) -> CacheEntry | None:
        with self._lock:
            return self._entries.get(make_cache_key(document_id, page_number))

    def put(
        self,
        document_id: str,
        page_number: int,
        text: str,
        method: FallbackEngine = "ocr",
    ) -> bool:
        key = make_cache_key(document_id, page_number)
        entry = CacheEntry(
            key=key,
            document_id=document_id,
            page_number=page_number,
            text=text,
            method=method,
        )
        with self._lock:
            self._entries[key] = entry
        return True

    def clear(self, document_id: str) -> int:
        with self._lock:
            keys = [k for k, e in self._entries.items() if e.document_id == document_id]
            for key in keys:
                del self._entries[key]
        return len(keys)

    def stats(self) -> dict[str, int]:
        with self._lock:
            documents = {e.document_id for e in self._entries.values()}
            return {"entries": len(self._entries), "documents": len(documents)}


class SqliteResultCache(ResultCache):
    """SQLite-backed cache that survives process restarts.

    One connection is shared between threads and serialized with a lock.
    """

    def __init__(self, db_path: Path | str):
        self._db_path = Path(db_path).expanduser()
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(str(self._db_path), check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    @property
    def path(self) -> Path:
        return self._db_path

    def get_entry(self, document_id: str, page_number: int) -> CacheEntry | None:
        key = make_cache_key(document_id, page_number)
        try:
            with self._lock:
                row = self._conn.execute(
                    "SELECT key, document_id, page_number, text, method, timestamp "
                    "FROM ocr_results WHERE key = ?",
                    (key,),
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning("Cache read failed for %s: %s", key, e)
            return None

        if row is None:
            logger.debug("Cache MISS for %s", key)
            return None

        try:
            entry = CacheEntry(
                key=row[0],
                document_id=row[1],
                page_number=row[2],
                text=row[3],
                method=row[4],
                timestamp=datetime.fromisoformat(row[5]),
            )
        except ValueError as e:
            logger.warning("Failed to deserialize cache entry %s: %s", key, e)
            return None

        logger.debug("Cache HIT for %s", key)
        return entry

    def put(
        self,
        document_id: str,
        page_number: int,
        text: str,
        method: FallbackEngine = "ocr",
    ) -> bool:
        entry = CacheEntry(
            key=make_cache_key(document_id, page_number),
            document_id=document_id,
            page_number=page_number,
            text=text,
            method=method,
        )
        try:
            with self._lock:
                self._conn.execute(
                    """INSERT OR REPLACE INTO ocr_results
                       (key, document_id, page_number, text, method, timestamp)
                       VALUES (?, ?, ?, ?, ?, ?)""",
                    (
                        entry.key,
                        entry.document_id,
                        entry.page_number,
                        entry.text,
                        entry.method,
                        entry.timestamp.isoformat(),
                    ),
                )
                self._conn.commit()
        except sqlite3.Error as e:
            logger.warning("Cache write failed for %s: %s", entry.key, e)
            return False

        logger.debug("Cached %s (%d chars)", entry.key, len(text))
        return True

    def clear(self, document_id: str) -> int:
        try:
            with self._lock:
                cursor = self._conn.execute(
                    "DELETE FROM ocr_results WHERE document_id = ?", (document_id,)
                )
                self._conn.commit()
        except sqlite3.Error as e:
            logger.warning("Cache clear failed for %s: %s", document_id, e)
            return 0

        logger.info("Cleared cache for %s (%d entries)", document_id, cursor.rowcount)
        return cursor.rowcount

    def stats(self) -> dict[str, int]:
        try:
            with self._lock:
                entries, documents = self._conn.execute(
                    "SELECT COUNT(*), COUNT(DISTINCT document_id) FROM ocr_results"
                ).fetchone()
        except sqlite3.Error as e:
            logger.warning("Cache stats failed: %s", e)
            return {"entries": 0, "documents": 0}
        return {"entries": entries, "documents": documents}

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            self._conn.close()
