"""
Day-bucket storage for metric datapoints.

Each metric's history is partitioned by UTC calendar day; one day's datapoints
are stored as a single JSON array under
``metrics/{metric_id}/{year}/{month}/{day}.json`` (month and day unpadded).
Buckets are always read and written whole.
"""

import asyncio
import json
import weakref
from contextlib import asynccontextmanager
from datetime import date, datetime
from typing import AsyncIterator, List, Optional, Sequence, Tuple, Union

from loguru import logger

from metrics.datapoints import Datapoint, to_utc_date
from metrics.errors import DatapointFormatError, ObjectNotFoundError, StorageError
from metrics.ingestion.object_store import ObjectStore, guess_content_type

DateLike = Union[date, datetime]


class BucketLocks:
    """
    Per-object asyncio locks.

    Serializes read-merge-write cycles on the same day bucket within one
    process. Locks are dropped once nobody holds a reference to them.
    """

    def __init__(self):
        self._locks: 'weakref.WeakValueDictionary[Tuple[str, str], asyncio.Lock]' = \
            weakref.WeakValueDictionary()

    def get(self, bucket: str, key: str) -> asyncio.Lock:
        lock = self._locks.get((bucket, key))
        if lock is None:
            lock = asyncio.Lock()
            self._locks[(bucket, key)] = lock
        return lock


bucket_locks = BucketLocks()


def day_bucket_key(metric_id: str, day: DateLike) -> str:
    """Object key of the day bucket holding ``day`` for ``metric_id``."""
    day = to_utc_date(day)
    return f"metrics/{metric_id}/{day.year}/{day.month}/{day.day}.json"


class DayBucketStore:
    """Reads and overwrites one metric's day buckets."""

    def __init__(
        self,
        object_store: ObjectStore,
        bucket_name: str,
        metric_id: str,
        locks: Optional[BucketLocks] = None
    ):
        self.object_store = object_store
        self.bucket_name = bucket_name
        self.metric_id = metric_id
        self.locks = locks or bucket_locks

    async def get_datapoints(self, day: DateLike) -> Optional[List[Datapoint]]:
        """
        Load the datapoints stored for one UTC day.

        Args:
            day: Date, or datetime whose UTC date selects the bucket

        Returns:
            Stored datapoints, or None if the bucket does not exist

        Raises:
            StorageError: If the read fails or the stored object is unreadable
        """
        key = day_bucket_key(self.metric_id, day)

        try:
            body = await self.object_store.get_object(self.bucket_name, key)
        except ObjectNotFoundError:
            logger.debug("No day bucket at {}", key)
            return None

        return self._deserialize(body, key)

    @staticmethod
    def _deserialize(body: bytes, key: str) -> List[Datapoint]:
        try:
            raw_points = json.loads(body)
            if not isinstance(raw_points, list):
                raise ValueError("day bucket is not a JSON array")
            return [Datapoint.from_dict(raw) for raw in raw_points]
        except (ValueError, DatapointFormatError) as e:
            logger.error("Unreadable day bucket {}: {}", key, str(e))
            raise StorageError(f"unreadable day bucket {key}: {e}") from e

    async def put_datapoints(self, day: DateLike, datapoints: Sequence[Datapoint]) -> None:
        """
        Overwrite one UTC day's bucket with the given datapoints.

        Raises:
            StorageError: If the write fails
        """
        key = day_bucket_key(self.metric_id, day)
        body = json.dumps([point.to_dict() for point in datapoints]).encode('utf-8')

        await self.object_store.put_object(self.bucket_name, key, body, guess_content_type(key))
        logger.debug("Wrote {} datapoints to {}", len(datapoints), key)

    @asynccontextmanager
    async def lock(self, day: DateLike) -> AsyncIterator[None]:
        """Hold the in-process lock for one day bucket."""
        key = day_bucket_key(self.metric_id, day)
        async with self.locks.get(self.bucket_name, key):
            yield
