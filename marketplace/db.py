# marketplace/db.py
"""Database engine and session utilities.

Centralized async SQLAlchemy engine creation and the session dependency for
FastAPI. The listings table plays the role of the document store.
"""
import os
from dotenv import load_dotenv
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

load_dotenv()

DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./marketplace.db"


def normalize_url(url: str) -> str:
    # hosted providers hand out sync URLs; the core talks asyncpg
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = normalize_url(os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL)


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        return {}
    # tuned pool settings for cloud DB
    return {
        "pool_size": int(os.getenv("DB_POOL_SIZE", 5)),
        "max_overflow": int(os.getenv("DB_MAX_OVERFLOW", 10)),
        "pool_pre_ping": True,
    }


engine = create_async_engine(DATABASE_URL, **_engine_kwargs(DATABASE_URL))

SessionLocal = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)
Base = declarative_base()


async def get_db():
    async with SessionLocal() as db:
        yield db


def get_session_factory():
    return SessionLocal
