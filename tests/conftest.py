# tests/conftest.py
import pytest
import pytest_asyncio
from datetime import timedelta
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from marketplace.assets import AssetLifecycleManager, ImageFile
from marketplace.db import Base
from marketplace.errors import StorageError
from marketplace.models import User
from marketplace.schemas import ListingDraft
from marketplace.storage import BlobStore
from marketplace.utils import utcnow

OWNER = "u-owner"
OTHER = "u-other"
ADMIN = "u-admin"


class FakeBlobStore(BlobStore):
    """In-memory blob store that records calls and fails on request."""

    def __init__(self):
        self.blobs = {}
        self.uploads = []
        self.deletes = []
        self.fail_upload_names = set()
        self.fail_delete_urls = set()

    async def upload(self, path, data, content_type="application/octet-stream"):
        self.uploads.append(path)
        if any(path.endswith(name) for name in self.fail_upload_names):
            raise StorageError(f"simulated upload failure for {path}")
        url = f"mem://{path}"
        self.blobs[url] = data
        return url

    async def delete(self, url):
        self.deletes.append(url)
        if url in self.fail_delete_urls:
            raise StorageError(f"simulated delete failure for {url}")
        self.blobs.pop(url, None)


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def users(session_factory):
    now = utcnow()
    async with session_factory() as session:
        session.add_all([
            User(id=OWNER, email="seller@example.com", username="seller", city="Kyiv", created_at=now - timedelta(hours=2)),
            User(id=OTHER, email="buyer@example.com", username=None, created_at=now - timedelta(days=3)),
            User(id=ADMIN, email="admin@example.com", username="admin", is_admin=True, created_at=now - timedelta(days=30)),
        ])
        await session.commit()
    return {"owner": OWNER, "other": OTHER, "admin": ADMIN}


@pytest.fixture
def store():
    return FakeBlobStore()


@pytest.fixture
def assets(store):
    return AssetLifecycleManager(store)


def make_draft(**overrides):
    data = {
        "title": "Nike hoodie",
        "description": "Warm hoodie, worn twice",
        "price": 5000,
        "condition": "used-excellent",
        "category_id": "clothing",
        "subcategory_id": "hoodies",
        "city": "Kyiv",
        "seller_contact": "@seller",
    }
    data.update(overrides)
    return ListingDraft(**data)


def make_images(n, prefix="photo"):
    return [ImageFile(filename=f"{prefix}{i}.jpg", content=b"\xff\xd8" + bytes([i]), content_type="image/jpeg") for i in range(n)]
