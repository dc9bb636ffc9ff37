"""
Error types for the metrics engine.

Every failure raised by the engine is a MetricsError subclass so that callers
can dispatch on the type instead of inspecting messages.
"""

from typing import Optional


class MetricsError(Exception):
    """Base class for all metrics engine errors."""


class ValidationError(MetricsError):
    """A Metric field violates its constraint."""

    def __init__(self, field: str, message: Optional[str] = None):
        self.field = field
        super().__init__(message or f"invalid {field}")


class NotFoundError(MetricsError):
    """A metric, bucket name or other referenced entity does not exist."""


class IntegrityError(MetricsError):
    """The catalog returned more than one metric for a single identifier."""


class DatapointFormatError(MetricsError):
    """An input datapoint has an unparseable timestamp or a non-numeric value."""


class CollaboratorError(MetricsError):
    """An external collaborator (object store, monitoring API, catalog) failed."""


class StorageError(CollaboratorError):
    """The object store failed to read or write an object."""


class ObjectNotFoundError(StorageError):
    """The requested object does not exist in the object store."""


class MonitoringAPIError(CollaboratorError):
    """The monitoring API request failed."""


class CatalogStoreError(CollaboratorError):
    """The catalog store failed to read or write metric metadata."""
