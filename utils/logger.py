"""
Logging configuration using loguru for the metrics service.
"""

import sys
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from loguru import logger

DEFAULT_LOGGING_CONFIG: Dict[str, Any] = {
    'level': 'INFO',
    'format': '{time:YYYY-MM-DD HH:mm:ss} | {level} | {message}',
    'rotation': '100 MB',
    'retention': '30 days',
    'compression': 'zip',
    'files': {}
}


class MetricsLogger:
    """Logger configuration for the metrics service."""

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize the logger configuration.

        Args:
            config_path: Path to the YAML configuration file
        """
        self.config = self._load_config(config_path)
        self._configured = False

    def _load_config(self, config_path: Optional[str] = None) -> dict:
        """Load logging configuration from yaml file."""
        config = dict(DEFAULT_LOGGING_CONFIG)

        if config_path and Path(config_path).exists():
            with open(config_path, 'r') as f:
                loaded = yaml.safe_load(f) or {}
            config.update(loaded.get('logging') or {})

        return config

    def setup(self):
        """Configure the logger with the specified settings."""
        if self._configured:
            return

        # Remove default handler
        logger.remove()

        logger.add(
            sys.stderr,
            level=self.config['level'],
            format=self.config['format'],
            colorize=True,
            backtrace=True,
            diagnose=False
        )

        for log_type, log_path in (self.config.get('files') or {}).items():
            Path(log_path).parent.mkdir(parents=True, exist_ok=True)

            level = 'ERROR' if log_type == 'errors' else self.config['level']

            logger.add(
                log_path,
                level=level,
                format=self.config['format'],
                rotation=self.config['rotation'],
                retention=self.config['retention'],
                compression=self.config['compression'],
                backtrace=True,
                diagnose=False,
                enqueue=True  # Thread-safe
            )

        self._configured = True
        logger.debug("Metrics logger initialized")


def setup_logging(config_path: Optional[str] = None) -> MetricsLogger:
    """Configure sinks from the ``logging`` section of the config file."""
    metrics_logger = MetricsLogger(config_path)
    metrics_logger.setup()
    return metrics_logger
