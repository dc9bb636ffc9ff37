"""
Metric entity and metric catalog.

A Metric carries the metadata of one tracked quantity and exposes its
time-series operations (reading a day, inserting datapoints, collecting from
the monitoring API). Metrics is the catalog used to find metrics by id or list
them.
"""

import asyncio
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from loguru import logger

from metrics.collector import DEFAULT_MAX_LOOKBACK_DAYS, BackfillCollector, utc_now
from metrics.const import (
    METRIC_ID_LENGTH,
    METRIC_STATUS_VISIBLE,
    METRIC_STATUSES,
    MONITORING_SERVICES
)
from metrics.datapoints import Datapoint, parse_datapoints
from metrics.errors import (
    CatalogStoreError,
    IntegrityError,
    MetricsError,
    MonitoringAPIError,
    NotFoundError,
    ValidationError
)
from metrics.ingestion.catalog_store import CatalogStore, MetricRecord
from metrics.ingestion.monitoring_api import MonitoringAPI
from metrics.ingestion.object_store import ObjectStore
from metrics.ingestion.stack_resolver import StackResolver
from metrics.merge import MergeInserter
from metrics.storage import DateLike, DayBucketStore


def generate_metric_id() -> str:
    """Random 12-character metric id."""
    return uuid.uuid4().hex[:METRIC_ID_LENGTH]


def generate_order() -> int:
    """Default display order: creation time in epoch seconds."""
    return int(time.time())


@dataclass
class MetricServices:
    """Collaborators and policies shared by Metric instances."""
    object_store: Optional[ObjectStore] = None
    monitoring_api: Optional[MonitoringAPI] = None
    stack_resolver: Optional[StackResolver] = None
    catalog_store: Optional[CatalogStore] = None
    clock: Callable[[], datetime] = utc_now
    id_generator: Callable[[], str] = generate_metric_id
    max_lookback_days: int = DEFAULT_MAX_LOOKBACK_DAYS

    def require(self, name: str) -> Any:
        service = getattr(self, name)
        if service is None:
            raise RuntimeError(f"{name} is not configured")
        return service


class Metric:
    """One tracked quantity on the status page."""

    def __init__(
        self,
        metric_id: Optional[str],
        metric_type: Optional[str],
        title: Optional[str],
        unit: Optional[str],
        description: Optional[str],
        status: Optional[str],
        order: Any = None,
        props: Any = None,
        services: Optional[MetricServices] = None
    ):
        """
        Initialize metric.

        Args:
            metric_id: Metric id, or None to generate one (a new metric)
            metric_type: Monitoring service kind, one of MONITORING_SERVICES
            title: Display title
            unit: Unit label, may be empty
            description: Description, may be empty
            status: 'visible' or 'hidden'
            order: Display order, generated if None
            props: Monitoring-service specific attributes
            services: Collaborators used by the I/O operations
        """
        self.services = services or MetricServices()

        self.is_new = metric_id is None
        self.metric_id = self.services.id_generator() if metric_id is None else metric_id
        self.type = metric_type
        self.title = title
        self.unit = unit
        self.description = description
        self.status = status
        self.order = generate_order() if order is None else order
        self.props = {} if props is None else props

        self.bucket_name: Optional[str] = None
        self._bucket_name_lock: Optional[asyncio.Lock] = None

    @classmethod
    def from_dict(cls, record: Mapping, services: Optional[MetricServices] = None) -> 'Metric':
        return cls(
            record.get('metric_id'),
            record.get('type'),
            record.get('title'),
            record.get('unit'),
            record.get('description'),
            record.get('status'),
            record.get('order'),
            record.get('props'),
            services=services
        )

    def to_dict(self) -> MetricRecord:
        """Persisted representation; the resolved bucket name is not included."""
        return {
            'metric_id': self.metric_id,
            'type': self.type,
            'title': self.title,
            'unit': self.unit,
            'description': self.description,
            'status': self.status,
            'order': self.order,
            'props': self.props
        }

    def __repr__(self) -> str:
        return f"Metric(metric_id={self.metric_id!r}, type={self.type!r}, title={self.title!r})"

    async def validate(self) -> None:
        """
        Check every field of the metric.

        Existing metrics (those constructed with an explicit id) must also be
        present in the catalog.

        Raises:
            ValidationError: If a field is invalid; ``error.field`` names it
            NotFoundError: If an existing metric is not in the catalog
        """
        if not isinstance(self.metric_id, str) or self.metric_id == '':
            raise ValidationError('metric_id', "invalid metric_id: must be a non-empty string")

        if not self.is_new:
            await Metrics(self.services).lookup(self.metric_id)

        if self.type not in MONITORING_SERVICES:
            raise ValidationError('type', f"invalid type: {self.type!r}")

        if not isinstance(self.title, str) or self.title == '':
            raise ValidationError('title', "invalid title: must be a non-empty string")

        if not isinstance(self.unit, str):
            raise ValidationError('unit', "invalid unit: must be a string")

        if not isinstance(self.description, str):
            raise ValidationError('description', "invalid description: must be a string")

        if self.status not in METRIC_STATUSES:
            raise ValidationError('status', f"invalid status: {self.status!r}")

        if isinstance(self.order, bool) or not isinstance(self.order, int):
            raise ValidationError('order', f"invalid order: {self.order!r}")

        if not isinstance(self.props, Mapping):
            raise ValidationError('props', "invalid props: must be a mapping")

    async def get_bucket_name(self) -> str:
        """
        Name of the bucket holding this metric's datapoints.

        Resolved once per instance and cached.

        Raises:
            NotFoundError: If the name cannot be resolved
        """
        if self.bucket_name is not None:
            return self.bucket_name

        if self._bucket_name_lock is None:
            self._bucket_name_lock = asyncio.Lock()

        async with self._bucket_name_lock:
            if self.bucket_name is None:
                resolver = self.services.require('stack_resolver')
                self.bucket_name = await resolver.get_status_page_bucket_name()
                logger.debug("Resolved bucket name {} for {}", self.bucket_name, self.metric_id)

        return self.bucket_name

    async def _day_buckets(self) -> DayBucketStore:
        bucket_name = await self.get_bucket_name()
        return DayBucketStore(self.services.require('object_store'), bucket_name, self.metric_id)

    async def get_datapoints(self, day: DateLike) -> Optional[List[Datapoint]]:
        """
        Datapoints stored for one UTC day.

        Returns:
            Datapoints in ascending timestamp order, or None if the day has no bucket
        """
        buckets = await self._day_buckets()
        return await buckets.get_datapoints(day)

    async def insert_datapoints(
        self,
        datapoints: Iterable[Union[Datapoint, Mapping]]
    ) -> List[Datapoint]:
        """
        Merge datapoints into this metric's day buckets.

        All inputs are validated before any I/O, so a bad timestamp means no
        bucket is read or written.

        Returns:
            Merged content of every touched day

        Raises:
            DatapointFormatError: If any datapoint is invalid
            StorageError: If a bucket cannot be read or written
        """
        parsed = parse_datapoints(datapoints)
        buckets = await self._day_buckets()
        return await MergeInserter(buckets).insert_datapoints(parsed)

    async def collect(self) -> List[Datapoint]:
        """Collect new datapoints from the monitoring API; see BackfillCollector."""
        buckets = await self._day_buckets()
        collector = BackfillCollector(
            self.metric_id,
            buckets,
            self.services.require('monitoring_api'),
            max_lookback_days=self.services.max_lookback_days,
            clock=self.services.clock
        )
        return await collector.collect()

    async def save(self) -> None:
        """Validate and store the metric's metadata in the catalog."""
        await self.validate()
        await self.services.require('catalog_store').put(self.to_dict())
        self.is_new = False
        logger.success("Saved metric {}", self.metric_id)

    async def delete(self) -> None:
        """
        Remove the metric from the catalog.

        Stored datapoints are left untouched.

        Raises:
            NotFoundError: If the metric is not in the catalog
        """
        removed = await self.services.require('catalog_store').delete(self.metric_id)
        if removed == 0:
            raise NotFoundError(f"metric {self.metric_id} not found")
        logger.info("Deleted metric {}", self.metric_id)


class Metrics:
    """Catalog operations over stored metric definitions."""

    def __init__(self, services: Optional[MetricServices] = None):
        self.services = services or MetricServices()

    def _to_metric(self, record: MetricRecord) -> Metric:
        return Metric.from_dict(record, services=self.services)

    async def list_external(self) -> List[Dict[str, Any]]:
        """
        List metric descriptors known to the monitoring API.

        Raises:
            MonitoringAPIError: If the monitoring API fails
        """
        monitoring_api = self.services.require('monitoring_api')
        try:
            return await monitoring_api.list_metrics()
        except Exception as e:
            logger.error("Failed to list external metrics: {}", str(e))
            raise MonitoringAPIError("Error: failed to list external metrics") from e

    async def list(self) -> List[Metric]:
        """
        List every catalog metric regardless of status.

        Raises:
            CatalogStoreError: If the catalog store fails
        """
        catalog_store = self.services.require('catalog_store')
        try:
            records = await catalog_store.get_all()
        except Exception as e:
            logger.error("Failed to list metrics: {}", str(e))
            raise CatalogStoreError("Error: failed to list metrics") from e

        return [self._to_metric(record) for record in records]

    async def list_public(self) -> List[Metric]:
        """List catalog metrics whose status is visible."""
        return [metric for metric in await self.list() if metric.status == METRIC_STATUS_VISIBLE]

    async def lookup(self, metric_id: str) -> Metric:
        """
        Find exactly one metric by id.

        Raises:
            NotFoundError: If no metric has this id
            IntegrityError: If several metrics share this id
            CatalogStoreError: If the catalog store fails
        """
        catalog_store = self.services.require('catalog_store')
        try:
            records = await catalog_store.get_by_id(metric_id)
        except MetricsError:
            raise
        except Exception as e:
            logger.error("Failed to look up metric {}: {}", metric_id, str(e))
            raise CatalogStoreError(f"Error: failed to look up metric {metric_id}") from e

        if len(records) == 0:
            raise NotFoundError(f"metric {metric_id} not found")
        if len(records) > 1:
            logger.error("Catalog holds {} metrics with id {}", len(records), metric_id)
            raise IntegrityError(f"Error: multiple metrics found for id {metric_id}")

        return self._to_metric(records[0])
