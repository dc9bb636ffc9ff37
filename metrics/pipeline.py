"""
Metrics pipeline orchestrator.

Batch entry points on top of the catalog and the time-series engine:
- posting datapoints for many metrics in one request
- collecting every catalog metric from the monitoring API

Failures are isolated per metric: one metric failing never stops the others.
"""

import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

import pytz
from loguru import logger

from metrics.datapoints import Datapoint
from metrics.errors import DatapointFormatError, MetricsError, NotFoundError
from metrics.ingestion.catalog_store import SQLiteCatalogStore
from metrics.ingestion.monitoring_api import HTTPMonitoringAPI
from metrics.ingestion.object_store import LocalObjectStore
from metrics.ingestion.stack_resolver import ConfigStackResolver
from metrics.metric import MetricServices, Metrics
from utils.config import ConfigManager


@dataclass
class PostResult:
    """
    Outcome of a datapoint post.

    Exactly one of ``errors`` and ``data`` is populated: any failure discards
    the successes so callers never see a partial result.
    """
    errors: List[Dict[str, str]] = field(default_factory=list)
    data: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return not self.errors


@dataclass
class CollectResult:
    """Container for one metric's collection outcome."""
    metric_id: str
    success: bool
    datapoints_merged: int
    processing_time: float
    error_message: Optional[str] = None


def build_services(config: ConfigManager) -> MetricServices:
    """Create the concrete collaborators described by the configuration."""
    storage_config = config.get_storage_config()
    catalog_config = config.get_catalog_config()
    monitoring_config = config.get_monitoring_config()
    collection_config = config.get_collection_config()

    monitoring_api = None
    if monitoring_config.base_url:
        monitoring_api = HTTPMonitoringAPI(
            monitoring_config.base_url,
            api_key=monitoring_config.api_key,
            timeout=monitoring_config.timeout,
            calls_per_minute=monitoring_config.calls_per_minute
        )
    else:
        logger.warning("monitoring.base_url not configured. Collection features disabled.")

    return MetricServices(
        object_store=LocalObjectStore(storage_config.object_store_path),
        monitoring_api=monitoring_api,
        stack_resolver=ConfigStackResolver(storage_config.bucket_name),
        catalog_store=SQLiteCatalogStore(catalog_config.db_path),
        max_lookback_days=collection_config.max_lookback_days
    )


def error_message_for(metric_id: str, error: Optional[Exception]) -> str:
    """Client-facing message for a failed post of one metric."""
    if isinstance(error, NotFoundError):
        return f"Error: the metric {metric_id} not found"
    if isinstance(error, DatapointFormatError):
        return f"Error: invalid datapoints for the metric {metric_id}"
    return "Error: failed to post the metric"


class MetricsPipeline:
    """
    Batch operations over many metrics.

    Features:
    - Per-metric failure isolation
    - All-or-nothing response shape for posts
    - Run statistics and summary logging
    """

    def __init__(self, services: MetricServices):
        """Initialize pipeline with shared collaborators."""
        self.services = services
        self.metrics = Metrics(services)

        # Pipeline statistics
        self.stats = {
            'total_collected': 0,
            'successful_collections': 0,
            'failed_collections': 0,
            'total_runtime': 0.0,
            'last_run': None
        }

    @classmethod
    def from_config(cls, config: ConfigManager) -> 'MetricsPipeline':
        return cls(build_services(config))

    async def post_datapoints(self, event: Mapping[str, Any]) -> PostResult:
        """
        Insert datapoints for several metrics.

        Args:
            event: Mapping of metric id to a list of ``{"timestamp", "value"}``

        Returns:
            PostResult with either every error or every metric's merged datapoints
        """
        result = PostResult()

        for metric_id, datapoints in event.items():
            try:
                metric = await self.metrics.lookup(metric_id)
                merged = await metric.insert_datapoints(datapoints)
                result.data[metric_id] = [point.to_dict() for point in merged]
            except MetricsError as e:
                logger.warning("Failed to post datapoints for {}: {}", metric_id, str(e))
                result.errors.append({'message': error_message_for(metric_id, e)})
            except Exception:
                logger.exception("Unexpected error posting datapoints for {}", metric_id)
                result.errors.append({'message': error_message_for(metric_id, None)})

        if result.errors:
            result.data = {}

        return result

    async def collect_all(self, metric_ids: Optional[List[str]] = None) -> Dict[str, CollectResult]:
        """
        Run collection for catalog metrics, one metric at a time.

        Args:
            metric_ids: Specific metrics to collect (None for all)

        Returns:
            Dictionary mapping metric ids to CollectResult objects

        Raises:
            CatalogStoreError: If the catalog cannot be listed
        """
        pipeline_start = time.time()
        self.stats['last_run'] = datetime.now(pytz.UTC)

        if metric_ids is None:
            metric_ids = [metric.metric_id for metric in await self.metrics.list()]

        logger.info("Collecting {} metrics", len(metric_ids))

        results = {}
        for metric_id in metric_ids:
            results[metric_id] = await self._collect_one(metric_id)

        self._update_pipeline_stats(results, time.time() - pipeline_start)
        self._log_pipeline_summary(results)

        return results

    async def _collect_one(self, metric_id: str) -> CollectResult:
        start = time.time()
        try:
            metric = await self.metrics.lookup(metric_id)
            merged: List[Datapoint] = await metric.collect()
            return CollectResult(
                metric_id=metric_id,
                success=True,
                datapoints_merged=len(merged),
                processing_time=time.time() - start
            )
        except Exception as e:
            logger.error("Collection failed for {}: {}", metric_id, str(e))
            return CollectResult(
                metric_id=metric_id,
                success=False,
                datapoints_merged=0,
                processing_time=time.time() - start,
                error_message=str(e)
            )

    def _update_pipeline_stats(self, results: Dict[str, CollectResult], runtime: float) -> None:
        successful = sum(1 for r in results.values() if r.success)

        self.stats['total_collected'] += len(results)
        self.stats['successful_collections'] += successful
        self.stats['failed_collections'] += len(results) - successful
        self.stats['total_runtime'] += runtime

    def _log_pipeline_summary(self, results: Dict[str, CollectResult]) -> None:
        total = len(results)
        successful = sum(1 for r in results.values() if r.success)
        failed = total - successful

        if failed == 0:
            logger.success("Collection summary: {}/{} successful", successful, total)
        else:
            logger.info("Collection summary: {}/{} successful, {} failed", successful, total, failed)
            failed_metrics = [metric_id for metric_id, r in results.items() if not r.success]
            logger.warning("Failed metrics: {}", failed_metrics)

    def get_pipeline_stats(self) -> Dict[str, Any]:
        """Get pipeline statistics, with monitoring API usage when rate limited."""
        stats = {
            'total_collected': self.stats['total_collected'],
            'successful_collections': self.stats['successful_collections'],
            'failed_collections': self.stats['failed_collections'],
            'success_rate': self.stats['successful_collections'] / max(1, self.stats['total_collected']),
            'total_runtime': self.stats['total_runtime'],
            'last_run': self.stats['last_run'].isoformat() if self.stats['last_run'] else None
        }

        monitoring_api = self.services.monitoring_api
        if isinstance(monitoring_api, HTTPMonitoringAPI):
            stats['api_usage'] = monitoring_api.rate_limiter.get_usage_stats()

        return stats
