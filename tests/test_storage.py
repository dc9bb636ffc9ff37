"""
Tests for day-bucket storage.
"""

import asyncio
from datetime import date, datetime

import pytest
import pytz

from conftest import BUCKET, FakeObjectStore
from metrics.datapoints import Datapoint, parse_timestamp
from metrics.errors import StorageError
from metrics.storage import BucketLocks, DayBucketStore, day_bucket_key

KEY = 'metrics/abc/2017/7/3.json'


class TestDayBucketKey:
    """Test object key layout."""

    def test_key_is_unpadded(self):
        assert day_bucket_key('abc', date(2017, 7, 3)) == KEY

    def test_key_from_datetime_uses_utc_day(self):
        ts = parse_timestamp('2017-07-04T08:00:00+09:00')

        assert day_bucket_key('abc', ts) == KEY

    def test_two_digit_month_and_day(self):
        assert day_bucket_key('abc', date(2017, 12, 25)) == 'metrics/abc/2017/12/25.json'


class TestDayBucketStore:
    """Test reading and writing one metric's day buckets."""

    @pytest.mark.asyncio
    async def test_get_existing_bucket(self):
        store = FakeObjectStore({KEY: [
            {'timestamp': '2017-07-03T00:00:00.000Z', 'value': 1},
            {'timestamp': '2017-07-03T00:01:00.000Z', 'value': 2}
        ]})
        buckets = DayBucketStore(store, BUCKET, 'abc')

        points = await buckets.get_datapoints(date(2017, 7, 3))

        assert [p.value for p in points] == [1, 2]
        assert store.get_calls == [KEY]

    @pytest.mark.asyncio
    async def test_absent_bucket_returns_none(self):
        buckets = DayBucketStore(FakeObjectStore(), BUCKET, 'abc')

        assert await buckets.get_datapoints(date(2017, 7, 3)) is None

    @pytest.mark.asyncio
    async def test_empty_bucket_is_not_absent(self):
        buckets = DayBucketStore(FakeObjectStore({KEY: []}), BUCKET, 'abc')

        assert await buckets.get_datapoints(date(2017, 7, 3)) == []

    @pytest.mark.asyncio
    async def test_read_failure_raises_storage_error(self):
        store = FakeObjectStore()
        store.failing_keys[KEY] = StorageError("access denied")
        buckets = DayBucketStore(store, BUCKET, 'abc')

        with pytest.raises(StorageError):
            await buckets.get_datapoints(date(2017, 7, 3))

    @pytest.mark.asyncio
    @pytest.mark.parametrize('body', [b'not json', b'{"timestamp": 1}', b'[{"timestamp": "foo", "value": 1}]'])
    async def test_unreadable_bucket_raises_storage_error(self, body):
        store = FakeObjectStore()
        store.objects[KEY] = body
        buckets = DayBucketStore(store, BUCKET, 'abc')

        with pytest.raises(StorageError):
            await buckets.get_datapoints(date(2017, 7, 3))

    @pytest.mark.asyncio
    async def test_put_overwrites_bucket(self):
        store = FakeObjectStore({KEY: [{'timestamp': '2017-07-03T00:00:00.000Z', 'value': 1}]})
        buckets = DayBucketStore(store, BUCKET, 'abc')
        points = [Datapoint(datetime(2017, 7, 3, 0, 5, tzinfo=pytz.UTC), 9)]

        await buckets.put_datapoints(date(2017, 7, 3), points)

        assert store.put_calls == [{
            'bucket': BUCKET,
            'key': KEY,
            'points': [{'timestamp': '2017-07-03T00:05:00.000Z', 'value': 9}],
            'content_type': 'application/json'
        }]


class TestBucketLocks:
    """Test per-object lock registry."""

    def test_same_object_same_lock(self):
        locks = BucketLocks()

        lock = locks.get(BUCKET, KEY)

        assert locks.get(BUCKET, KEY) is lock
        assert locks.get(BUCKET, 'metrics/abc/2017/7/4.json') is not lock

    @pytest.mark.asyncio
    async def test_lock_serializes_same_day(self):
        buckets = DayBucketStore(FakeObjectStore(), BUCKET, 'abc', locks=BucketLocks())
        events = []

        async def hold(name):
            async with buckets.lock(date(2017, 7, 3)):
                events.append(f"{name} start")
                await asyncio.sleep(0)
                events.append(f"{name} end")

        await asyncio.gather(hold('a'), hold('b'))

        assert events == ['a start', 'a end', 'b start', 'b end']
