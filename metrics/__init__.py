"""
Status Page Metrics

Time-series persistence and backfill engine for status page metrics:
- Day-partitioned datapoint buckets in an object store
- Merge-insert with last-write-wins by timestamp and write-if-changed
- Backfill collection that resumes where stored history ends
- Metric catalog with lookup and validation
"""

from .errors import (
    MetricsError,
    ValidationError,
    NotFoundError,
    IntegrityError,
    DatapointFormatError,
    CollaboratorError,
    StorageError,
    ObjectNotFoundError,
    MonitoringAPIError,
    CatalogStoreError
)
from .datapoints import Datapoint
from .storage import DayBucketStore
from .merge import MergeInserter
from .collector import BackfillCollector
from .metric import Metric, Metrics, MetricServices

__all__ = [
    'MetricsError',
    'ValidationError',
    'NotFoundError',
    'IntegrityError',
    'DatapointFormatError',
    'CollaboratorError',
    'StorageError',
    'ObjectNotFoundError',
    'MonitoringAPIError',
    'CatalogStoreError',
    'Datapoint',
    'DayBucketStore',
    'MergeInserter',
    'BackfillCollector',
    'Metric',
    'Metrics',
    'MetricServices'
]

__version__ = "1.0.0"
