"""
Configuration utilities for the metrics service.
"""

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from loguru import logger

DEFAULT_CONFIG_PATH = "config/config.yaml"

_ENV_PLACEHOLDER = re.compile(r'^\$\{([A-Za-z_][A-Za-z0-9_]*)\}$')


@dataclass
class StorageConfig:
    """Object store configuration."""
    bucket_name: Optional[str]
    object_store_path: str


@dataclass
class CatalogConfig:
    """Catalog store configuration."""
    db_path: str


@dataclass
class MonitoringConfig:
    """Monitoring API configuration."""
    base_url: Optional[str]
    api_key: Optional[str]
    timeout: float
    calls_per_minute: int


@dataclass
class CollectionConfig:
    """Backfill collection configuration."""
    max_lookback_days: int


class ConfigManager:
    """Manages service configuration."""

    def __init__(self, config_path: str = DEFAULT_CONFIG_PATH):
        """Initialize configuration manager."""
        self.config_path = Path(config_path)
        self.config: Dict[str, Any] = {}
        self.load_config()

    def load_config(self):
        """Load configuration from file."""
        if not self.config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {self.config_path}")

        load_dotenv()  # Load environment variables

        with open(self.config_path, 'r') as f:
            self.config = yaml.safe_load(f) or {}

        # Replace environment variable placeholders
        self._replace_env_vars(self.config)

        logger.info("Configuration loaded from {}", self.config_path)

    def _replace_env_vars(self, config: Any) -> Any:
        """
        Replace ``${VAR}`` placeholders with environment values.

        Placeholders whose variable is unset become None.
        """
        if isinstance(config, dict):
            items = config.items()
        elif isinstance(config, list):
            items = enumerate(config)
        else:
            return config

        for key, value in list(items):
            if isinstance(value, str):
                match = _ENV_PLACEHOLDER.match(value)
                if match:
                    config[key] = os.getenv(match.group(1))
            elif isinstance(value, (dict, list)):
                self._replace_env_vars(value)

        return config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dotted key."""
        keys = key.split('.')
        value = self.config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_storage_config(self) -> StorageConfig:
        return StorageConfig(
            bucket_name=self.get('storage.bucket_name'),
            object_store_path=self.get('storage.object_store_path', 'data/objects')
        )

    def get_catalog_config(self) -> CatalogConfig:
        return CatalogConfig(db_path=self.get('catalog.db_path', 'data/catalog/metrics.db'))

    def get_monitoring_config(self) -> MonitoringConfig:
        return MonitoringConfig(
            base_url=self.get('monitoring.base_url'),
            api_key=self.get('monitoring.api_key'),
            timeout=float(self.get('monitoring.timeout', 30)),
            calls_per_minute=int(self.get('monitoring.rate_limits.calls_per_minute', 60))
        )

    def get_collection_config(self) -> CollectionConfig:
        return CollectionConfig(max_lookback_days=int(self.get('collection.max_lookback_days', 1)))

    def validate_config(self) -> bool:
        """Validate configuration completeness."""
        required_sections = ['storage', 'catalog', 'monitoring', 'collection']

        for section in required_sections:
            if section not in self.config:
                logger.error("Missing required configuration section: {}", section)
                return False

        if self.get_collection_config().max_lookback_days < 0:
            logger.error("collection.max_lookback_days must not be negative")
            return False

        logger.info("Configuration validation passed")
        return True

    def reload_config(self):
        """Reload configuration from file."""
        logger.info("Reloading configuration...")
        self.load_config()


_config_manager: Optional[ConfigManager] = None


def get_config(config_path: str = DEFAULT_CONFIG_PATH) -> ConfigManager:
    """Get global configuration manager, loading it on first use."""
    global _config_manager
    if _config_manager is None or _config_manager.config_path != Path(config_path):
        _config_manager = ConfigManager(config_path)
    return _config_manager
