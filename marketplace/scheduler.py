# marketplace/scheduler.py
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from . import cleanup
from .assets import AssetLifecycleManager
from .db import SessionLocal
from .storage import get_blob_store
from .utils import env_int, logger

CLEANUP_INTERVAL_MINUTES = env_int("CLEANUP_INTERVAL_MINUTES", 10)

scheduler = AsyncIOScheduler()


async def drain_cleanup_queue():
    async with SessionLocal() as db:
        return await cleanup.drain(db, AssetLifecycleManager(get_blob_store()))


def start_scheduler():
    if scheduler.running:
        return
    scheduler.add_job(
        drain_cleanup_queue, "interval",
        minutes=CLEANUP_INTERVAL_MINUTES,
        id="blob-cleanup", replace_existing=True, coalesce=True, max_instances=1,
    )
    scheduler.start()
    logger.info("Scheduler started")


def stop_scheduler():
    if scheduler.running:
        scheduler.shutdown(wait=False)
