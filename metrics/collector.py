"""
Backfill collection from the monitoring API.

The collector keeps no bookkeeping of its own: the stored day buckets tell it
where history stops. It looks for the most recent existing bucket (today, then
up to ``max_lookback_days`` back), resumes at that bucket's latest datapoint and
pulls everything from there to now.
"""

from datetime import date, datetime, timedelta
from typing import Callable, List, NamedTuple, Optional

import pytz
from loguru import logger

from metrics.datapoints import (
    Datapoint, parse_datapoints, start_of_day, to_utc_date, truncate_to_minute
)
from metrics.errors import MetricsError, MonitoringAPIError
from metrics.ingestion.monitoring_api import MonitoringAPI
from metrics.merge import MergeInserter
from metrics.storage import DayBucketStore

DEFAULT_MAX_LOOKBACK_DAYS = 1


class ResumePoint(NamedTuple):
    """Where stored history ends for one metric."""
    instant: datetime
    anchor_day: Optional[date]
    from_datapoint: bool


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


class BackfillCollector:
    """Resumes collection of one metric from wherever its history left off."""

    def __init__(
        self,
        metric_id: str,
        buckets: DayBucketStore,
        monitoring_api: MonitoringAPI,
        max_lookback_days: int = DEFAULT_MAX_LOOKBACK_DAYS,
        clock: Callable[[], datetime] = utc_now
    ):
        """
        Initialize collector.

        Args:
            metric_id: Metric to collect
            buckets: Day bucket store of that metric
            monitoring_api: Source of new datapoints
            max_lookback_days: How many days before today to search for an anchor
            clock: Returns the current aware UTC time
        """
        if max_lookback_days < 0:
            raise ValueError("max_lookback_days must not be negative")

        self.metric_id = metric_id
        self.buckets = buckets
        self.monitoring_api = monitoring_api
        self.max_lookback_days = max_lookback_days
        self.clock = clock
        self.inserter = MergeInserter(buckets)

    async def find_resume_instant(self, today: date) -> ResumePoint:
        """
        Find where stored history ends.

        The first existing bucket, searching back from ``today``, is the anchor:
        resume at its latest datapoint, or at the start of its day if it is
        empty. Without any anchor, resume at the start of the oldest day
        searched.
        """
        for days_back in range(self.max_lookback_days + 1):
            day = today - timedelta(days=days_back)
            datapoints = await self.buckets.get_datapoints(day)
            if datapoints is None:
                continue

            if datapoints:
                return ResumePoint(datapoints[-1].timestamp, day, True)
            return ResumePoint(start_of_day(day), day, False)

        return ResumePoint(start_of_day(today - timedelta(days=self.max_lookback_days)), None, False)

    async def collect(self) -> List[Datapoint]:
        """
        Pull new datapoints from the monitoring API and merge them.

        Points at or before the last stored datapoint are already in storage
        and are dropped before merging.

        Returns:
            Merged content of every day touched by the new datapoints

        Raises:
            MonitoringAPIError: If fetching datapoints fails (nothing is written)
            StorageError: If reading or writing a day bucket fails
        """
        now = self.clock()
        resume = await self.find_resume_instant(to_utc_date(now))

        if resume.anchor_day is None:
            logger.info("No history found for {}, collecting from {}", self.metric_id, resume.instant)
        else:
            logger.info("Resuming {} from {} (anchor {})", self.metric_id, resume.instant, resume.anchor_day)

        fetched = await self._fetch(resume.instant, now)
        if resume.from_datapoint:
            fetched = [point for point in fetched if point.timestamp > resume.instant]

        if not fetched:
            logger.info("No new datapoints for {}", self.metric_id)
            return []

        datapoints = [truncate_to_minute(point) for point in fetched]
        return await self.inserter.insert_datapoints(datapoints)

    async def _fetch(self, begin: datetime, end: datetime) -> List[Datapoint]:
        try:
            raw_points = await self.monitoring_api.get_metric_data(self.metric_id, begin, end)
            return parse_datapoints(raw_points)
        except MonitoringAPIError:
            raise
        except MetricsError as e:
            raise MonitoringAPIError(f"invalid data from monitoring API for {self.metric_id}: {e}") from e
        except Exception as e:
            logger.error("Failed to fetch datapoints for {}: {}", self.metric_id, str(e))
            raise MonitoringAPIError(f"failed to fetch datapoints for {self.metric_id}") from e
