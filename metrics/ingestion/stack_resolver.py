"""
Resolution of the status page's storage bucket name.
"""

from abc import ABC, abstractmethod
from typing import Optional

from loguru import logger

from metrics.errors import NotFoundError


class StackResolver(ABC):
    """Base class for bucket name resolvers."""

    @abstractmethod
    async def get_status_page_bucket_name(self) -> str:
        """
        Return the name of the bucket holding status page data.

        Raises:
            NotFoundError: If the name cannot be resolved
        """
        pass


class ConfigStackResolver(StackResolver):
    """Resolves the bucket name from the ``storage.bucket_name`` setting."""

    def __init__(self, bucket_name: Optional[str]):
        self.bucket_name = bucket_name

    async def get_status_page_bucket_name(self) -> str:
        if not self.bucket_name:
            logger.error("Status page bucket name is not configured")
            raise NotFoundError("status page bucket name not found")

        return self.bucket_name
