"""
Tests for the metric catalog.
"""

import sqlite3

import pytest

from conftest import FakeCatalogStore, FakeMonitoringAPI, metric_record
from metrics.const import METRIC_STATUS_HIDDEN
from metrics.errors import (
    CatalogStoreError,
    IntegrityError,
    MonitoringAPIError,
    NotFoundError
)
from metrics.metric import Metric, MetricServices, Metrics


class TestLookup:
    """Test lookup by id."""

    @pytest.mark.asyncio
    async def test_single_match(self):
        metrics = Metrics(MetricServices(catalog_store=FakeCatalogStore([
            metric_record('abc'), metric_record('def')
        ])))

        metric = await metrics.lookup('abc')

        assert isinstance(metric, Metric)
        assert metric.metric_id == 'abc'
        assert not metric.is_new

    @pytest.mark.asyncio
    async def test_no_match(self):
        metrics = Metrics(MetricServices(catalog_store=FakeCatalogStore()))

        with pytest.raises(NotFoundError):
            await metrics.lookup('abc')

    @pytest.mark.asyncio
    async def test_duplicate_ids(self):
        metrics = Metrics(MetricServices(catalog_store=FakeCatalogStore([
            metric_record('abc'), metric_record('abc', title='other')
        ])))

        with pytest.raises(IntegrityError):
            await metrics.lookup('abc')

    @pytest.mark.asyncio
    async def test_store_failure(self):
        store = FakeCatalogStore(error=sqlite3.OperationalError("database is locked"))
        metrics = Metrics(MetricServices(catalog_store=store))

        with pytest.raises(CatalogStoreError):
            await metrics.lookup('abc')

    @pytest.mark.asyncio
    async def test_looked_up_metric_shares_services(self):
        services = MetricServices(catalog_store=FakeCatalogStore([metric_record('abc')]))

        metric = await Metrics(services).lookup('abc')

        assert metric.services is services


class TestListing:
    """Test catalog listings."""

    @pytest.mark.asyncio
    async def test_list_returns_every_status(self):
        metrics = Metrics(MetricServices(catalog_store=FakeCatalogStore([
            metric_record('abc'), metric_record('def', status=METRIC_STATUS_HIDDEN)
        ])))

        listed = await metrics.list()

        assert [m.metric_id for m in listed] == ['abc', 'def']

    @pytest.mark.asyncio
    async def test_list_public_hides_hidden(self):
        metrics = Metrics(MetricServices(catalog_store=FakeCatalogStore([
            metric_record('abc'), metric_record('def', status=METRIC_STATUS_HIDDEN)
        ])))

        listed = await metrics.list_public()

        assert [m.metric_id for m in listed] == ['abc']

    @pytest.mark.asyncio
    async def test_list_store_failure(self):
        store = FakeCatalogStore(error=sqlite3.OperationalError("database is locked"))
        metrics = Metrics(MetricServices(catalog_store=store))

        with pytest.raises(CatalogStoreError):
            await metrics.list()

    @pytest.mark.asyncio
    async def test_list_external(self):
        descriptors = [{'metric_id': 'cpu', 'title': 'CPU'}]
        metrics = Metrics(MetricServices(monitoring_api=FakeMonitoringAPI(descriptors=descriptors)))

        assert await metrics.list_external() == descriptors

    @pytest.mark.asyncio
    async def test_list_external_failure(self):
        api = FakeMonitoringAPI(error=ConnectionError("connection refused"))
        metrics = Metrics(MetricServices(monitoring_api=api))

        with pytest.raises(MonitoringAPIError) as exc_info:
            await metrics.list_external()

        assert str(exc_info.value) == "Error: failed to list external metrics"
