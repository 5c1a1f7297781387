# marketplace/cleanup.py
"""Durable queue of orphaned blob URLs.

Entries are written in the same transaction as the listing change that
orphaned them, and drained later by the scheduler, the admin endpoint or
``run_cleanup.py``. Failed attempts stay in the table with their error so
orphans remain retryable and auditable.
"""
from typing import Dict, List, Optional, Sequence
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from .assets import AssetLifecycleManager
from .models import BlobCleanup
from .schemas import CleanupReport
from .utils import env_int, logger, utcnow

CLEANUP_MAX_ATTEMPTS = env_int("CLEANUP_MAX_ATTEMPTS", 5)


def enqueue(
    db: AsyncSession,
    urls: Sequence[str],
    listing_id: Optional[str],
    reason: str,
    errors: Optional[Dict[str, str]] = None,
) -> List[BlobCleanup]:
    """Stage cleanup entries on `db`; the caller commits."""
    errors = errors or {}
    entries = []
    for url in urls:
        failed = url in errors
        entry = BlobCleanup(
            url=url,
            listing_id=listing_id,
            reason=reason,
            attempts=1 if failed else 0,
            last_error=(errors.get(url) or "")[:1000] or None,
        )
        db.add(entry)
        entries.append(entry)
    if entries:
        logger.info("Queued %d orphaned blobs for listing %s (%s)", len(entries), listing_id, reason)
    return entries


async def open_entries(db: AsyncSession, limit: int = 100, max_attempts: int = None) -> List[BlobCleanup]:
    if max_attempts is None:
        max_attempts = CLEANUP_MAX_ATTEMPTS
    stmt = (
        select(BlobCleanup)
        .where(BlobCleanup.completed_at.is_(None), BlobCleanup.attempts < max_attempts)
        .order_by(BlobCleanup.created_at.asc(), BlobCleanup.id.asc())
        .limit(limit)
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def drain(
    db: AsyncSession,
    assets: AssetLifecycleManager,
    limit: int = 100,
    max_attempts: int = None,
) -> CleanupReport:
    entries = await open_entries(db, limit=limit, max_attempts=max_attempts)
    report = CleanupReport(attempted=len(entries))
    if not entries:
        return report
    failures = await assets.delete_all([e.url for e in entries])
    now = utcnow()
    for entry in entries:
        if entry.url in failures:
            entry.attempts += 1
            entry.last_error = failures[entry.url][:1000]
            report.failed += 1
        else:
            entry.completed_at = now
            report.deleted += 1
    await db.commit()
    logger.info(
        "Blob cleanup: attempted=%d deleted=%d failed=%d",
        report.attempted, report.deleted, report.failed,
    )
    return report
