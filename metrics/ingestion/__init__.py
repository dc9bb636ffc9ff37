"""
External collaborators of the metrics engine.

- Object store for day-bucket blobs (filesystem implementation)
- Monitoring API client with client-side rate limiting
- Stack resolver for the status page bucket name
- Catalog store for metric metadata (SQLite implementation)
"""

from .object_store import ObjectStore, LocalObjectStore
from .monitoring_api import MonitoringAPI, HTTPMonitoringAPI, RateLimiter
from .stack_resolver import StackResolver, ConfigStackResolver
from .catalog_store import CatalogStore, SQLiteCatalogStore

__all__ = [
    'ObjectStore',
    'LocalObjectStore',
    'MonitoringAPI',
    'HTTPMonitoringAPI',
    'RateLimiter',
    'StackResolver',
    'ConfigStackResolver',
    'CatalogStore',
    'SQLiteCatalogStore'
]
