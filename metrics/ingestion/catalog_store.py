"""
Catalog store for metric metadata.

Holds one record per metric (id, type, title, unit, description, status, order,
props). Only metadata lives here; datapoints live in the object store.
"""

import asyncio
import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Dict, List

from loguru import logger

from metrics.errors import CatalogStoreError

MetricRecord = Dict[str, Any]


class CatalogStore(ABC):
    """Base class for metric metadata stores."""

    @abstractmethod
    async def get_all(self) -> List[MetricRecord]:
        """Return every stored metric record."""
        pass

    @abstractmethod
    async def get_by_id(self, metric_id: str) -> List[MetricRecord]:
        """Return the records stored under metric_id (expected 0 or 1)."""
        pass

    @abstractmethod
    async def put(self, record: MetricRecord) -> None:
        """Create or replace a metric record."""
        pass

    @abstractmethod
    async def delete(self, metric_id: str) -> int:
        """Delete a metric record and return the number of rows removed."""
        pass


class SQLiteCatalogStore(CatalogStore):
    """
    SQLite-backed catalog store.

    Every call opens its own connection in a worker thread, so the store can be
    shared by coroutines without holding a connection across awaits.
    """

    def __init__(self, db_path: str = "data/catalog/metrics.db"):
        """Initialize the store and its schema."""
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        self._initialize_database()

        logger.info("SQLiteCatalogStore initialized with database: {}", self.db_path)

    def _initialize_database(self) -> None:
        with self._get_connection() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS metrics (
                    metric_id TEXT PRIMARY KEY,
                    type TEXT NOT NULL,
                    title TEXT NOT NULL,
                    unit TEXT NOT NULL,
                    description TEXT NOT NULL,
                    status TEXT NOT NULL,
                    sort_order INTEGER NOT NULL,
                    props TEXT NOT NULL  -- JSON object
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_status ON metrics (status)")
            conn.commit()

    @contextmanager
    def _get_connection(self):
        """Context manager for database connections."""
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise CatalogStoreError(f"failed to open catalog database: {e}") from e

        conn.row_factory = sqlite3.Row
        try:
            yield conn
        except sqlite3.Error as e:
            logger.error("Catalog store error: {}", str(e))
            raise CatalogStoreError(f"catalog store error: {e}") from e
        finally:
            conn.close()

    @staticmethod
    def _row_to_record(row: sqlite3.Row) -> MetricRecord:
        record = dict(row)
        record['order'] = record.pop('sort_order')
        record['props'] = json.loads(record['props'])
        return record

    async def get_all(self) -> List[MetricRecord]:
        return await asyncio.to_thread(self._get_all)

    def _get_all(self) -> List[MetricRecord]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM metrics ORDER BY sort_order, metric_id").fetchall()
            return [self._row_to_record(row) for row in rows]

    async def get_by_id(self, metric_id: str) -> List[MetricRecord]:
        return await asyncio.to_thread(self._get_by_id, metric_id)

    def _get_by_id(self, metric_id: str) -> List[MetricRecord]:
        with self._get_connection() as conn:
            rows = conn.execute("SELECT * FROM metrics WHERE metric_id = ?", (metric_id,)).fetchall()
            return [self._row_to_record(row) for row in rows]

    async def put(self, record: MetricRecord) -> None:
        await asyncio.to_thread(self._put, record)

    def _put(self, record: MetricRecord) -> None:
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO metrics
                (metric_id, type, title, unit, description, status, sort_order, props)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    record['metric_id'], record['type'], record['title'], record['unit'],
                    record['description'], record['status'], record['order'],
                    json.dumps(record['props'])
                )
            )
            conn.commit()

    async def delete(self, metric_id: str) -> int:
        return await asyncio.to_thread(self._delete, metric_id)

    def _delete(self, metric_id: str) -> int:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM metrics WHERE metric_id = ?", (metric_id,))
            conn.commit()
            return cursor.rowcount
