"""
Utilities package for the metrics service.
"""

from .logger import (
    MetricsLogger,
    setup_logging
)

from .config import (
    ConfigManager,
    StorageConfig,
    CatalogConfig,
    MonitoringConfig,
    CollectionConfig,
    get_config
)

__all__ = [
    # Logger exports
    'MetricsLogger',
    'setup_logging',

    # Config exports
    'ConfigManager',
    'StorageConfig',
    'CatalogConfig',
    'MonitoringConfig',
    'CollectionConfig',
    'get_config'
]
