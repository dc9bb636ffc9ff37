"""
Object store collaborators.

The engine only needs whole-object get and put. A missing object is reported
with ObjectNotFoundError so callers can tell absence apart from a failed read.
"""

import asyncio
import mimetypes
import os
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from loguru import logger

from metrics.errors import ObjectNotFoundError, StorageError


def guess_content_type(key: str) -> str:
    """Content type for an object key, based on its extension."""
    content_type, _ = mimetypes.guess_type(key)
    return content_type or 'application/octet-stream'


class ObjectStore(ABC):
    """Base class for object stores."""

    @abstractmethod
    async def get_object(self, bucket: str, key: str) -> bytes:
        """
        Read a whole object.

        Args:
            bucket: Container name
            key: Object key within the container

        Returns:
            Object body

        Raises:
            ObjectNotFoundError: If the object does not exist
            StorageError: If the read fails for any other reason
        """
        pass

    @abstractmethod
    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None
    ) -> None:
        """
        Create or overwrite a whole object.

        Raises:
            StorageError: If the write fails
        """
        pass


class LocalObjectStore(ObjectStore):
    """
    Filesystem-backed object store.

    Buckets are directories under ``base_path`` and keys are relative paths
    inside them. Writes go to a temporary file first and are moved into place,
    so readers never see a partially written object. Content types are logged
    but not stored.
    """

    def __init__(self, base_path: str = "data/objects"):
        """Initialize store rooted at base_path."""
        self.base_path = Path(base_path)
        self.base_path.mkdir(parents=True, exist_ok=True)

        logger.info("LocalObjectStore initialized with base path: {}", self.base_path)

    def _object_path(self, bucket: str, key: str) -> Path:
        if not bucket:
            raise StorageError("bucket name is empty")

        bucket_path = (self.base_path / bucket).resolve()
        path = (bucket_path / key).resolve()
        if bucket_path not in path.parents:
            raise StorageError(f"invalid object key: {key}")
        return path

    async def get_object(self, bucket: str, key: str) -> bytes:
        path = self._object_path(bucket, key)
        return await asyncio.to_thread(self._read, path, key)

    def _read(self, path: Path, key: str) -> bytes:
        try:
            return path.read_bytes()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(f"object not found: {key}") from e
        except OSError as e:
            logger.error("Failed to read object {}: {}", key, str(e))
            raise StorageError(f"failed to read object {key}: {e}") from e

    async def put_object(
        self,
        bucket: str,
        key: str,
        body: bytes,
        content_type: Optional[str] = None
    ) -> None:
        content_type = content_type or guess_content_type(key)
        path = self._object_path(bucket, key)
        await asyncio.to_thread(self._write, path, key, body)
        logger.debug("Stored object {} ({}, {} bytes)", key, content_type, len(body))

    def _write(self, path: Path, key: str, body: bytes) -> None:
        tmp_path = path.with_name(path.name + '.tmp')
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_bytes(body)
            os.replace(tmp_path, path)
        except OSError as e:
            logger.error("Failed to write object {}: {}", key, str(e))
            raise StorageError(f"failed to write object {key}: {e}") from e
