"""
Datapoint parsing, normalization and day partitioning.

Timestamps are handled with pandas and always kept as timezone-aware UTC
datetimes truncated to milliseconds, so two datapoints are the same exactly when
their serialized timestamps are equal.
"""

import math
import re
from collections import OrderedDict
from dataclasses import dataclass
from datetime import date, datetime, time
from numbers import Real
from typing import Any, Dict, Iterable, List, Mapping, Union

import pandas as pd
import pytz

from metrics.errors import DatapointFormatError

Number = Union[int, float]

ISO_8601_PATTERN = re.compile(
    r"\d{4}-\d{2}-\d{2}"
    r"(?:[T ]\d{2}:\d{2}(?::\d{2}(?:\.\d+)?)?(?:Z|[+-]\d{2}(?::?\d{2})?)?)?"
)


@dataclass(frozen=True)
class Datapoint:
    """One scalar observation of a metric."""
    timestamp: datetime
    value: Number

    @classmethod
    def from_dict(cls, raw: Mapping[str, Any]) -> 'Datapoint':
        """
        Build a Datapoint from a ``{"timestamp": ..., "value": ...}`` mapping.

        Raises:
            DatapointFormatError: If the timestamp or the value is invalid
        """
        if not isinstance(raw, Mapping):
            raise DatapointFormatError(f"invalid datapoint: {raw!r}")
        return cls(
            timestamp=parse_timestamp(raw.get('timestamp')),
            value=_parse_value(raw.get('value'))
        )

    def to_dict(self) -> Dict[str, Any]:
        return {'timestamp': format_timestamp(self.timestamp), 'value': self.value}

    @property
    def day(self) -> date:
        """UTC calendar day this datapoint belongs to."""
        return self.timestamp.date()


def parse_timestamp(raw: Any) -> datetime:
    """
    Parse an ISO-8601 instant into an aware UTC datetime.

    Naive timestamps are assumed to be UTC. Precision beyond milliseconds is
    dropped.

    Args:
        raw: ISO-8601 string or datetime

    Returns:
        Timezone-aware UTC datetime

    Raises:
        DatapointFormatError: If the input is not a valid instant
    """
    if not isinstance(raw, (str, datetime)):
        raise DatapointFormatError(f"invalid timestamp: {raw!r}")
    if isinstance(raw, str) and not ISO_8601_PATTERN.fullmatch(raw):
        raise DatapointFormatError(f"invalid timestamp: {raw!r}")

    try:
        ts = pd.Timestamp(raw)
    except (ValueError, TypeError, OverflowError) as e:
        raise DatapointFormatError(f"invalid timestamp: {raw!r}") from e

    if ts is pd.NaT:
        raise DatapointFormatError(f"invalid timestamp: {raw!r}")

    if ts.tzinfo is None:
        ts = ts.tz_localize('UTC')
    else:
        ts = ts.tz_convert('UTC')

    return ts.floor('ms').to_pydatetime()


def format_timestamp(ts: datetime) -> str:
    """Serialize a UTC datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ``."""
    ts = ts.astimezone(pytz.UTC)
    return ts.strftime('%Y-%m-%dT%H:%M:%S.') + f"{ts.microsecond // 1000:03d}Z"


def _parse_value(raw: Any) -> Number:
    if isinstance(raw, bool) or not isinstance(raw, Real):
        raise DatapointFormatError(f"invalid value: {raw!r}")
    if isinstance(raw, float) and not math.isfinite(raw):
        raise DatapointFormatError(f"invalid value: {raw!r}")
    return raw


def parse_datapoints(raw_points: Iterable[Union[Datapoint, Mapping[str, Any]]]) -> List[Datapoint]:
    """Parse every input before anything else happens; fails on the first bad one."""
    if isinstance(raw_points, (str, bytes, Mapping)):
        raise DatapointFormatError("datapoints must be a list")

    return [
        point if isinstance(point, Datapoint) else Datapoint.from_dict(point)
        for point in raw_points
    ]


def truncate_to_minute(point: Datapoint) -> Datapoint:
    """Zero the seconds and sub-second components of a datapoint's timestamp."""
    return Datapoint(
        timestamp=point.timestamp.replace(second=0, microsecond=0),
        value=point.value
    )


def partition_by_day(points: Iterable[Datapoint]) -> 'OrderedDict[date, List[Datapoint]]':
    """
    Group datapoints by UTC calendar day.

    Returns:
        Mapping of day to that day's points (input order kept), ascending by day
    """
    groups: Dict[date, List[Datapoint]] = {}
    for point in points:
        groups.setdefault(point.day, []).append(point)

    return OrderedDict(sorted(groups.items()))


def start_of_day(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return pytz.UTC.localize(datetime.combine(day, time.min))


def to_utc_date(value: Union[date, datetime]) -> date:
    """UTC calendar date of a date or datetime; naive datetimes are taken as UTC."""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(pytz.UTC).date()
    if isinstance(value, date):
        return value
    raise TypeError(f"expected date or datetime, got {type(value).__name__}")
