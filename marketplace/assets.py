# marketplace/assets.py
"""Image asset lifecycle for listings.

Keeps a listing's ``images`` field consistent with what is actually in the
blob store across create, edit and delete. Uploads fail loudly; deletions are
best-effort and report their failures instead of raising.
"""
import asyncio
import posixpath
import time
from dataclasses import dataclass
from typing import Dict, List, Sequence, Tuple
from .errors import StorageError
from .storage import BlobStore
from .utils import logger


@dataclass
class ImageFile:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


def blob_path(owner_id: str, listing_id: str, filename: str, stamp: int = None) -> str:
    name = posixpath.basename(filename.replace("\\", "/")) or "image"
    if stamp is None:
        stamp = int(time.time() * 1000)
    return f"{owner_id}/{listing_id}/{stamp}_{name}"


class AssetLifecycleManager:
    def __init__(self, store: BlobStore):
        self.store = store

    async def _upload_one(self, owner_id: str, listing_id: str, index: int, file: ImageFile) -> str:
        # index keeps paths unique when two files in a batch share a name
        path = blob_path(owner_id, listing_id, f"{index}_{file.filename}")
        return await self.store.upload(path, file.content, file.content_type)

    async def upload_all(self, owner_id: str, listing_id: str, files: Sequence[ImageFile]) -> List[str]:
        """Upload every file independently and return URLs in input order.

        If any upload fails a StorageError is raised carrying the URLs that
        did succeed; those blobs are left in place for the caller to decide on.
        """
        if not files:
            return []
        results = await asyncio.gather(
            *(self._upload_one(owner_id, listing_id, i, f) for i, f in enumerate(files)),
            return_exceptions=True,
        )
        uploaded = [r for r in results if isinstance(r, str)]
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            logger.warning(
                "Upload batch for listing %s failed: %d of %d files, %d left in storage",
                listing_id, len(errors), len(files), len(uploaded),
            )
            raise StorageError(f"Failed to upload {len(errors)} of {len(files)} images: {errors[0]}", uploaded=uploaded)
        logger.info("Uploaded %d images for listing %s", len(uploaded), listing_id)
        return uploaded

    async def _delete_one(self, url: str):
        try:
            await self.store.delete(url)
        except Exception as e:
            return url, str(e) or e.__class__.__name__
        return None

    async def delete_all(self, urls: Sequence[str]) -> Dict[str, str]:
        """Attempt every deletion; return failures as url -> error, never raise."""
        if not urls:
            return {}
        results = await asyncio.gather(*(self._delete_one(u) for u in urls))
        failures = dict(r for r in results if r is not None)
        for url, err in failures.items():
            logger.warning("Failed to delete blob %s: %s", url, err)
        return failures

    async def reconcile(
        self,
        owner_id: str,
        listing_id: str,
        old_urls: Sequence[str],
        keep_urls: Sequence[str],
        new_files: Sequence[ImageFile],
    ) -> Tuple[List[str], List[str]]:
        """Compute the image list after an edit.

        Returns ``(final_urls, orphaned)`` where ``final_urls`` is the kept
        URLs followed by the freshly uploaded ones and ``orphaned`` is
        ``old_urls - keep_urls``. Orphans are not deleted here; the caller
        queues them for cleanup so the edit never waits on it.
        """
        keep = list(keep_urls)
        kept = set(keep)
        orphaned = [u for u in old_urls if u not in kept]
        uploaded = await self.upload_all(owner_id, listing_id, new_files)
        return keep + uploaded, orphaned
