"""
Monitoring API adapter with client-side rate limiting.

Provides the two calls the metrics engine needs from an external monitoring
service: listing the metrics it knows about and fetching datapoints for one
metric over a time range.
"""

import asyncio
from abc import ABC, abstractmethod
from collections import deque
from datetime import datetime, timedelta
from typing import Any, Deque, Dict, List, Optional, Tuple

import requests
from loguru import logger

from metrics.datapoints import Datapoint, format_timestamp, parse_datapoints
from metrics.errors import DatapointFormatError, MonitoringAPIError


class MonitoringAPI(ABC):
    """Base class for monitoring API clients."""

    @abstractmethod
    async def list_metrics(self) -> List[Dict[str, Any]]:
        """
        List metric descriptors known to the monitoring service.

        Raises:
            MonitoringAPIError: If the request fails
        """
        pass

    @abstractmethod
    async def get_metric_data(
        self,
        metric_id: str,
        begin: datetime,
        end: datetime
    ) -> List[Datapoint]:
        """
        Fetch datapoints for one metric in ``[begin, end)``.

        Raises:
            MonitoringAPIError: If the request fails
        """
        pass


class RateLimiter:
    """Sliding one-minute window of API calls."""

    def __init__(self, calls_per_minute: int = 60):
        self.calls_per_minute = calls_per_minute
        self.call_history: Deque[datetime] = deque()

    def can_make_call(self) -> Tuple[bool, float]:
        """
        Check if we can make an API call within the rate limit.

        Returns:
            Tuple of (can_call, wait_seconds)
        """
        now = datetime.now()
        minute_ago = now - timedelta(minutes=1)

        while self.call_history and self.call_history[0] <= minute_ago:
            self.call_history.popleft()

        if len(self.call_history) >= self.calls_per_minute:
            oldest_recent = self.call_history[0]
            wait_seconds = (oldest_recent + timedelta(minutes=1) - now).total_seconds()
            return False, max(wait_seconds, 0.0)

        return True, 0.0

    def record_call(self) -> None:
        self.call_history.append(datetime.now())

    def get_usage_stats(self) -> Dict[str, int]:
        """Get current usage statistics."""
        self.can_make_call()
        recent_calls = len(self.call_history)
        return {
            'recent_calls': recent_calls,
            'calls_per_minute_limit': self.calls_per_minute,
            'minute_remaining': self.calls_per_minute - recent_calls
        }


class HTTPMonitoringAPI(MonitoringAPI):
    """
    JSON-over-HTTP monitoring API client.

    Endpoints:
    - ``GET {base_url}/metrics`` returns a list of metric descriptors
    - ``GET {base_url}/metrics/{metric_id}/datapoints?begin=..&end=..`` returns
      a list of ``{"timestamp": ..., "value": ...}`` objects

    Requests are not retried; a failed call raises MonitoringAPIError and the
    caller decides what to do.
    """

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30,
        calls_per_minute: int = 60
    ):
        """
        Initialize the client.

        Args:
            base_url: Root URL of the monitoring API
            api_key: Optional bearer token
            timeout: Per-request timeout in seconds
            calls_per_minute: Client-side rate limit
        """
        if not base_url:
            raise ValueError("Monitoring API base URL is required")

        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.rate_limiter = RateLimiter(calls_per_minute=calls_per_minute)

        # Session for connection pooling
        self.session = requests.Session()
        if api_key:
            self.session.headers['Authorization'] = f"Bearer {api_key}"

        logger.info("HTTPMonitoringAPI initialized for {}", self.base_url)

    async def list_metrics(self) -> List[Dict[str, Any]]:
        payload = await self._request('/metrics')
        if not isinstance(payload, list):
            raise MonitoringAPIError("unexpected response listing metrics")
        return payload

    async def get_metric_data(
        self,
        metric_id: str,
        begin: datetime,
        end: datetime
    ) -> List[Datapoint]:
        params = {'begin': format_timestamp(begin), 'end': format_timestamp(end)}
        payload = await self._request(f'/metrics/{metric_id}/datapoints', params)
        if not isinstance(payload, list):
            raise MonitoringAPIError(f"unexpected response for metric {metric_id}")

        try:
            return parse_datapoints(payload)
        except DatapointFormatError as e:
            raise MonitoringAPIError(f"malformed datapoints for metric {metric_id}: {e}") from e

    async def _request(self, path: str, params: Optional[Dict[str, str]] = None) -> Any:
        can_call, wait_seconds = self.rate_limiter.can_make_call()
        if not can_call:
            logger.info("Rate limit reached. Waiting {:.1f} seconds", wait_seconds)
            await asyncio.sleep(wait_seconds)

        self.rate_limiter.record_call()
        return await asyncio.to_thread(self._get_json, path, params)

    def _get_json(self, path: str, params: Optional[Dict[str, str]]) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except (requests.RequestException, ValueError) as e:
            logger.error("Monitoring API error for {}: {}", path, str(e))
            raise MonitoringAPIError(f"monitoring API request failed: {path}") from e
