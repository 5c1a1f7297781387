# marketplace/models.py
"""SQLAlchemy ORM models for persisted entities.

`Listing` is the central record, `User` mirrors the identity provider's
backing store (read-only for the core) and `BlobCleanup` is the durable
queue of orphaned image URLs awaiting deletion.
"""
from datetime import timezone
from enum import Enum
from sqlalchemy import Boolean, Column, Float, Index, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import DateTime, TypeDecorator
from .db import Base
from .utils import utcnow

JSONType = JSON().with_variant(JSONB(), "postgresql")


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes, also on backends that drop tzinfo (sqlite)."""
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value


class ListingStatus(str, Enum):
    PENDING_MODERATION = "pending_moderation"
    ACTIVE = "active"
    REJECTED = "rejected"
    SOLD = "sold"


class User(Base):
    __tablename__ = "users"
    id = Column(String(128), primary_key=True)
    email = Column(Text)
    username = Column(Text)
    city = Column(Text)
    telegram = Column(Text)
    is_admin = Column(Boolean, nullable=False, default=False)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow, index=True)


class Listing(Base):
    __tablename__ = "listings"
    id = Column(String(32), primary_key=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False)
    price = Column(Float, nullable=False, default=0.0)
    condition = Column(String(32), nullable=False)
    # denormalized {"id", "name"} copies; taxonomy edits never rewrite old listings
    category = Column(JSONType, nullable=False)
    subcategory = Column(JSONType, nullable=False)
    city = Column(String(64), nullable=False)
    images = Column(JSONType, nullable=False, default=list)
    seller_contact = Column(Text, nullable=False, default="")
    seller_id = Column(String(128), nullable=False, index=True)
    seller_username = Column(Text)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    status = Column(String(32), nullable=False, default=ListingStatus.PENDING_MODERATION.value)
    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    @property
    def category_id(self):
        return (self.category or {}).get("id")

    @property
    def subcategory_id(self):
        return (self.subcategory or {}).get("id")


class BlobCleanup(Base):
    __tablename__ = "blob_cleanup"
    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(Text, nullable=False)
    listing_id = Column(String(32), index=True)
    reason = Column(String(32), nullable=False)
    attempts = Column(Integer, nullable=False, default=0)
    last_error = Column(Text)
    created_at = Column(UTCDateTime, nullable=False, default=utcnow)
    completed_at = Column(UTCDateTime)

Index("idx_listings_created_at", Listing.created_at)
Index("idx_listings_status", Listing.status)
Index("idx_blob_cleanup_open", BlobCleanup.completed_at, BlobCleanup.attempts)
