import argparse
import asyncio
from dotenv import load_dotenv

# Load environment variables from .env before the package reads them
load_dotenv()


async def run_once(limit, max_attempts):
    from marketplace import cleanup
    from marketplace.assets import AssetLifecycleManager
    from marketplace.db import Base, SessionLocal, engine
    from marketplace.storage import get_blob_store

    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with SessionLocal() as db:
            pending = await cleanup.open_entries(db, limit=limit, max_attempts=max_attempts)
            if not pending:
                print("No orphaned blobs queued for cleanup.")
                return None
            print(f"Retrying deletion of {len(pending)} orphaned blob(s)...")
            assets = AssetLifecycleManager(get_blob_store())
            return await cleanup.drain(db, assets, limit=limit, max_attempts=max_attempts)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Drain the orphaned blob cleanup queue once.")
    parser.add_argument("--limit", type=int, default=100)
    parser.add_argument("--max-attempts", type=int, default=None)
    args = parser.parse_args()

    report = asyncio.run(run_once(args.limit, args.max_attempts))
    if report is None:
        raise SystemExit(0)
    print(f"attempted={report.attempted} deleted={report.deleted} failed={report.failed}")
    raise SystemExit(1 if report.failed else 0)
