"""
Merge-insert of new datapoints into day buckets.
"""

from typing import Any, Iterable, List, Mapping, Sequence, Union

from loguru import logger

from metrics.datapoints import Datapoint, parse_datapoints, partition_by_day
from metrics.storage import DayBucketStore


def merge_datapoints(existing: Sequence[Datapoint], new_points: Iterable[Datapoint]) -> List[Datapoint]:
    """
    Merge new datapoints into an existing day's datapoints.

    A new point whose timestamp is already present replaces the stored value
    (last write wins, also among the new points themselves); any other point is
    added. The result is sorted ascending by timestamp.
    """
    by_timestamp = {point.timestamp: point for point in existing}
    for point in new_points:
        by_timestamp[point.timestamp] = point

    return sorted(by_timestamp.values(), key=lambda point: point.timestamp)


class MergeInserter:
    """
    Reconciles batches of new datapoints with a metric's day buckets.

    Features:
    - Validation of the whole batch before any storage access
    - One read and at most one write per touched day
    - Days processed sequentially in ascending order
    - Writes skipped when the merged content equals what is stored
    """

    def __init__(self, buckets: DayBucketStore):
        self.buckets = buckets

    async def insert_datapoints(
        self,
        new_points: Iterable[Union[Datapoint, Mapping[str, Any]]]
    ) -> List[Datapoint]:
        """
        Insert datapoints into their day buckets.

        Args:
            new_points: Datapoints or ``{"timestamp", "value"}`` mappings

        Returns:
            Merged content of every touched day, concatenated in day order

        Raises:
            DatapointFormatError: If any input is invalid (nothing is written)
            StorageError: If a bucket cannot be read or written
        """
        parsed = parse_datapoints(new_points)
        days = partition_by_day(parsed)

        merged_all: List[Datapoint] = []
        for day, day_points in days.items():
            async with self.buckets.lock(day):
                existing = await self.buckets.get_datapoints(day) or []
                merged = merge_datapoints(existing, day_points)

                if merged == existing:
                    logger.debug("Day bucket {} for {} unchanged, skipping write",
                                 day, self.buckets.metric_id)
                else:
                    await self.buckets.put_datapoints(day, merged)
                    logger.info("Merged {} datapoints into {} for {} ({} total)",
                                len(day_points), day, self.buckets.metric_id, len(merged))

            merged_all.extend(merged)

        return merged_all
