# tests/test_cleanup.py
from sqlalchemy import select
from marketplace import cleanup
from marketplace.models import BlobCleanup
from conftest import make_images


async def test_drain_deletes_and_records_failures(db, assets, store):
    urls = await assets.upload_all("u1", "l1", make_images(3))
    cleanup.enqueue(db, urls, "l1", reason="edit")
    await db.commit()
    store.fail_delete_urls.add(urls[2])

    report = await cleanup.drain(db, assets)

    assert (report.attempted, report.deleted, report.failed) == (3, 2, 1)
    rows = (await db.execute(select(BlobCleanup).order_by(BlobCleanup.id))).scalars().all()
    assert [r.completed_at is not None for r in rows] == [True, True, False]
    assert rows[2].attempts == 1
    assert "simulated" in rows[2].last_error

    # next run only retries the open entry
    store.fail_delete_urls.clear()
    report = await cleanup.drain(db, assets)
    assert (report.attempted, report.deleted, report.failed) == (1, 1, 0)
    assert store.blobs == {}


async def test_drain_parks_entries_after_max_attempts(db, assets, store):
    store.fail_delete_urls.add("mem://gone.jpg")
    cleanup.enqueue(db, ["mem://gone.jpg"], None, reason="delete", errors={"mem://gone.jpg": "boom"})
    await db.commit()

    first = await cleanup.drain(db, assets, max_attempts=2)
    assert first.failed == 1
    second = await cleanup.drain(db, assets, max_attempts=2)
    assert second.attempted == 0
    assert store.deletes == ["mem://gone.jpg"]


async def test_drain_completes_entries_whose_blob_is_already_gone(db, assets, store):
    cleanup.enqueue(db, ["mem://l1/missing.jpg"], "l1", reason="edit")
    await db.commit()

    report = await cleanup.drain(db, assets)

    assert (report.attempted, report.deleted, report.failed) == (1, 1, 0)
    row = (await db.execute(select(BlobCleanup))).scalar_one()
    assert row.completed_at is not None
    assert row.attempts == 0


async def test_drain_empty_queue(db, assets):
    report = await cleanup.drain(db, assets)
    assert report.attempted == 0


async def test_enqueue_marks_initial_failures(db):
    entries = cleanup.enqueue(db, ["mem://a", "mem://b"], "l1", reason="delete", errors={"mem://b": "timeout"})
    await db.commit()
    assert [(e.attempts, e.last_error) for e in entries] == [(0, None), (1, "timeout")]


class _RecordingEngine:
    def __init__(self, real):
        self.real = real
        self.disposed = False

    def begin(self):
        return self.real.begin()

    async def dispose(self):
        self.disposed = True


async def test_run_once_releases_engine_when_queue_is_empty(engine, session_factory, monkeypatch):
    import run_cleanup
    from marketplace import db as db_module

    recording = _RecordingEngine(engine)
    monkeypatch.setattr(db_module, "engine", recording)
    monkeypatch.setattr(db_module, "SessionLocal", session_factory)

    assert await run_cleanup.run_once(limit=10, max_attempts=None) is None
    assert recording.disposed


async def test_run_once_drains_and_releases_engine(engine, session_factory, store, monkeypatch):
    import run_cleanup
    from marketplace import db as db_module
    from marketplace import storage as storage_module

    store.blobs["mem://l1/a.jpg"] = b"x"
    async with session_factory() as session:
        cleanup.enqueue(session, ["mem://l1/a.jpg"], "l1", reason="edit")
        await session.commit()

    recording = _RecordingEngine(engine)
    monkeypatch.setattr(db_module, "engine", recording)
    monkeypatch.setattr(db_module, "SessionLocal", session_factory)
    monkeypatch.setattr(storage_module, "get_blob_store", lambda: store)

    report = await run_cleanup.run_once(limit=10, max_attempts=None)
    assert (report.attempted, report.deleted, report.failed) == (1, 1, 0)
    assert store.blobs == {}
    assert recording.disposed
