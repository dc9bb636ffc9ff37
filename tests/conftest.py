"""
Shared fixtures and in-memory collaborators for the metrics tests.
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

import pytest
import pytz

from metrics.const import METRIC_STATUS_VISIBLE, MONITORING_SERVICES
from metrics.errors import ObjectNotFoundError, StorageError
from metrics.ingestion.catalog_store import CatalogStore
from metrics.ingestion.monitoring_api import MonitoringAPI
from metrics.ingestion.object_store import ObjectStore
from metrics.ingestion.stack_resolver import StackResolver
from metrics.metric import Metric, MetricServices

BUCKET = 'bucket'
NOW = datetime(2017, 7, 3, 12, 0, 0, tzinfo=pytz.UTC)


def encode(points: List[Dict[str, Any]]) -> bytes:
    return json.dumps(points).encode('utf-8')


class FakeObjectStore(ObjectStore):
    """Object store keeping objects in a dict and recording every call."""

    def __init__(self, objects: Optional[Dict[str, List[Dict[str, Any]]]] = None):
        self.objects: Dict[str, bytes] = {key: encode(points) for key, points in (objects or {}).items()}
        self.failing_keys: Dict[str, Exception] = {}
        self.get_calls: List[str] = []
        self.put_calls: List[Dict[str, Any]] = []

    async def get_object(self, bucket: str, key: str) -> bytes:
        self.get_calls.append(key)
        if key in self.failing_keys:
            raise self.failing_keys[key]
        if key not in self.objects:
            raise ObjectNotFoundError(f"object not found: {key}")
        return self.objects[key]

    async def put_object(self, bucket, key, body, content_type=None) -> None:
        if key in self.failing_keys:
            raise StorageError(f"failed to write object {key}")
        self.put_calls.append({
            'bucket': bucket,
            'key': key,
            'points': json.loads(body),
            'content_type': content_type
        })
        self.objects[key] = body

    def stored(self, key: str) -> List[Dict[str, Any]]:
        return json.loads(self.objects[key])


class FakeMonitoringAPI(MonitoringAPI):
    """Monitoring API returning canned datapoints and recording requests."""

    def __init__(self, datapoints=None, descriptors=None, error: Optional[Exception] = None):
        self.datapoints = datapoints or []
        self.descriptors = descriptors or []
        self.error = error
        self.calls: List[Dict[str, Any]] = []

    async def list_metrics(self):
        if self.error:
            raise self.error
        return self.descriptors

    async def get_metric_data(self, metric_id, begin, end):
        self.calls.append({'metric_id': metric_id, 'begin': begin, 'end': end})
        if self.error:
            raise self.error
        return list(self.datapoints)


class FakeStackResolver(StackResolver):
    def __init__(self, bucket_name: str = BUCKET):
        self.bucket_name = bucket_name
        self.call_count = 0

    async def get_status_page_bucket_name(self) -> str:
        self.call_count += 1
        return self.bucket_name


class FakeCatalogStore(CatalogStore):
    """Catalog store over a plain list, so duplicate ids can be simulated."""

    def __init__(self, records=None, error: Optional[Exception] = None):
        self.records = list(records or [])
        self.error = error

    async def get_all(self):
        if self.error:
            raise self.error
        return list(self.records)

    async def get_by_id(self, metric_id):
        if self.error:
            raise self.error
        return [r for r in self.records if r['metric_id'] == metric_id]

    async def put(self, record):
        self.records = [r for r in self.records if r['metric_id'] != record['metric_id']]
        self.records.append(dict(record))

    async def delete(self, metric_id):
        before = len(self.records)
        self.records = [r for r in self.records if r['metric_id'] != metric_id]
        return before - len(self.records)


def metric_record(metric_id: str, status: str = METRIC_STATUS_VISIBLE, **overrides) -> Dict[str, Any]:
    record = {
        'metric_id': metric_id,
        'type': MONITORING_SERVICES[0],
        'title': f"title {metric_id}",
        'unit': 'ms',
        'description': '',
        'status': status,
        'order': 1,
        'props': {}
    }
    record.update(overrides)
    return record


@pytest.fixture
def object_store():
    return FakeObjectStore()


@pytest.fixture
def monitoring_api():
    return FakeMonitoringAPI()


@pytest.fixture
def stack_resolver():
    return FakeStackResolver()


@pytest.fixture
def catalog_store():
    return FakeCatalogStore()


@pytest.fixture
def services(object_store, monitoring_api, stack_resolver, catalog_store):
    return MetricServices(
        object_store=object_store,
        monitoring_api=monitoring_api,
        stack_resolver=stack_resolver,
        catalog_store=catalog_store,
        clock=lambda: NOW,
        id_generator=lambda: 'generated012'
    )


@pytest.fixture
def new_metric(services):
    """A valid metric that is not yet in the catalog."""
    return Metric(None, MONITORING_SERVICES[0], 'title', 'unit', 'description',
                  METRIC_STATUS_VISIBLE, 1, {}, services=services)
