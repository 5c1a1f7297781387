# marketplace/storage.py
"""Blob store boundary.

The core only needs two primitives: upload bytes under a path and get a URL
back, and delete by URL. `LocalBlobStore` keeps blobs on disk under
``BLOB_ROOT`` and hands out URLs under ``BLOB_BASE_URL``.
"""
import asyncio
import os
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from dotenv import load_dotenv
from .errors import StorageError
from .utils import logger, retry

load_dotenv()

BLOB_ROOT = os.getenv("BLOB_ROOT", "./media")
BLOB_BASE_URL = os.getenv("BLOB_BASE_URL", "/media")


class BlobStore(ABC):
    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        """Store `data` at `path` and return a retrievable URL."""

    @abstractmethod
    async def delete(self, url: str) -> None:
        """Remove the blob behind `url`; a missing blob counts as deleted.

        Raise StorageError when the blob exists but cannot be removed.
        """


class LocalBlobStore(BlobStore):
    def __init__(self, root: str = BLOB_ROOT, base_url: str = BLOB_BASE_URL):
        self.root = Path(root).resolve()
        self.base_url = base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        target = (self.root / path.lstrip("/")).resolve()
        if self.root not in target.parents:
            raise StorageError(f"Blob path escapes storage root: {path}")
        return target

    def path_for_url(self, url: str) -> str:
        prefix = self.base_url + "/"
        if not url.startswith(prefix):
            raise StorageError(f"Not a blob URL of this store: {url}")
        return url[len(prefix):]

    @retry(OSError, tries=3, delay=0.2, backoff=2)
    async def _write(self, target: Path, data: bytes) -> None:
        def _do():
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        await asyncio.to_thread(_do)

    @retry(OSError, tries=3, delay=0.2, backoff=2)
    async def _unlink(self, target: Path) -> None:
        await asyncio.to_thread(target.unlink)

    async def upload(self, path: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        target = self._resolve(path)
        try:
            await self._write(target, data)
        except OSError as e:
            logger.exception("Blob upload failed for %s", path)
            raise StorageError(f"Upload failed for {path}: {e}") from e
        return f"{self.base_url}/{path.lstrip('/')}"

    async def delete(self, url: str) -> None:
        target = self._resolve(self.path_for_url(url))
        if not target.is_file():
            logger.info("Blob already gone: %s", url)
            return
        try:
            await self._unlink(target)
        except FileNotFoundError:
            logger.info("Blob already gone: %s", url)
        except OSError as e:
            raise StorageError(f"Delete failed for {url}: {e}") from e


@lru_cache()
def get_blob_store() -> BlobStore:
    return LocalBlobStore()
