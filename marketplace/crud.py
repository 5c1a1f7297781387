# marketplace/crud.py
"""Repository operations for `Listing` records.

This module is the only reader/writer of the listings table. It validates
content, owns id generation and ownership checks, and delegates image
handling to `AssetLifecycleManager`. Any content edit sends the listing back
to moderation.
"""
import uuid
from typing import Any, Dict, List, Optional, Sequence
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError
from . import cleanup, errors, taxonomy
from .assets import AssetLifecycleManager, ImageFile
from .models import Listing, ListingStatus
from .schemas import ListingDraft, ListingPatch
from .utils import logger, utcnow

MIN_IMAGES = 1
MAX_IMAGES = 5


def new_listing_id() -> str:
    return uuid.uuid4().hex


def _check_image_count(count: int):
    if count < MIN_IMAGES:
        raise errors.ValidationError("A listing needs at least one image")
    if count > MAX_IMAGES:
        raise errors.ValidationError(f"A listing can have at most {MAX_IMAGES} images, got {count}")


def _validate_content(data: Dict[str, Any]) -> Dict[str, Any]:
    """Check content fields and return them in their stored shape."""
    title = (data.get("title") or "").strip()
    description = (data.get("description") or "").strip()
    if not title:
        raise errors.ValidationError("Title is required")
    if not description:
        raise errors.ValidationError("Description is required")
    price = data.get("price")
    if price is None or price < 0:
        raise errors.ValidationError("Price must be a non-negative number")
    condition = data.get("condition") or ""
    if not taxonomy.is_known_condition(condition):
        raise errors.ValidationError(f"Unknown condition: {condition!r}")
    city = data.get("city") or ""
    if not taxonomy.is_known_city(city):
        raise errors.ValidationError(f"Unknown city: {city!r}")
    pair = taxonomy.resolve(data.get("category_id") or "", data.get("subcategory_id") or "")
    if pair is None:
        raise errors.ValidationError(
            f"Unknown category/subcategory: {data.get('category_id')!r}/{data.get('subcategory_id')!r}"
        )
    category, subcategory = pair
    return {
        "title": title,
        "description": description,
        "price": float(price),
        "condition": condition,
        "category": category.to_dict(),
        "subcategory": subcategory.to_dict(),
        "city": city,
        "seller_contact": (data.get("seller_contact") or "").strip(),
    }


def ensure_can_modify(listing: Listing, caller_id: str, caller_is_admin: bool):
    if caller_is_admin or (caller_id and caller_id == listing.seller_id):
        return
    raise errors.AuthorizationError(f"Not allowed to modify listing {listing.id}")


def check_version(listing: Listing, expected_version: Optional[int]):
    if expected_version is not None and expected_version != listing.version:
        raise errors.ConflictError(
            f"Listing {listing.id} was modified concurrently",
            expected=expected_version,
            actual=listing.version,
        )


async def commit_or_storage_error(db: AsyncSession, listing_id: str, uploaded: Sequence[str] = ()):
    """Commit, mapping document-store failures to StorageError after a rollback."""
    try:
        await db.commit()
    except StaleDataError:
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        if uploaded:
            logger.error("Commit failed for listing %s; uploaded blobs left in storage: %s", listing_id, list(uploaded))
        else:
            logger.exception("Commit failed for listing %s", listing_id)
        raise errors.StorageError(f"Could not save listing {listing_id}: {e}", uploaded=uploaded) from e


async def commit_or_conflict(db: AsyncSession, listing_id: str, uploaded: Sequence[str] = ()):
    try:
        await commit_or_storage_error(db, listing_id, uploaded)
    except StaleDataError as e:
        await db.rollback()
        raise errors.ConflictError(f"Listing {listing_id} was modified concurrently") from e


async def create_listing(
    db: AsyncSession,
    assets: AssetLifecycleManager,
    owner_id: str,
    owner_name: str,
    draft: ListingDraft,
    files: Sequence[ImageFile],
) -> Listing:
    _check_image_count(len(files))
    content = _validate_content(draft.model_dump())
    listing_id = new_listing_id()
    # StorageError propagates; blobs already uploaded stay (see StorageError.uploaded)
    urls = await assets.upload_all(owner_id, listing_id, files)
    listing = Listing(
        id=listing_id,
        images=urls,
        seller_id=owner_id,
        seller_username=owner_name,
        created_at=utcnow(),
        status=ListingStatus.PENDING_MODERATION.value,
        **content,
    )
    db.add(listing)
    await commit_or_storage_error(db, listing_id, uploaded=urls)
    logger.info("Created listing %s for seller %s", listing_id, owner_id)
    return listing


async def get_listing(db: AsyncSession, listing_id: str) -> Optional[Listing]:
    return await db.get(Listing, listing_id)


async def require_listing(db: AsyncSession, listing_id: str) -> Listing:
    listing = await get_listing(db, listing_id)
    if listing is None:
        raise errors.NotFoundError(f"Listing {listing_id} not found")
    return listing


async def list_listings(db: AsyncSession) -> List[Listing]:
    stmt = select(Listing).order_by(Listing.created_at.desc(), Listing.id.desc())
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def list_listings_for_owner(db: AsyncSession, owner_id: str) -> List[Listing]:
    stmt = (
        select(Listing)
        .where(Listing.seller_id == owner_id)
        .order_by(Listing.created_at.desc(), Listing.id.desc())
    )
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def update_listing(
    db: AsyncSession,
    assets: AssetLifecycleManager,
    caller_id: str,
    caller_is_admin: bool,
    listing_id: str,
    patch: ListingPatch,
    new_files: Sequence[ImageFile] = (),
) -> Listing:
    listing = await require_listing(db, listing_id)
    ensure_can_modify(listing, caller_id, caller_is_admin)
    check_version(listing, patch.expected_version)

    current = {
        "title": listing.title,
        "description": listing.description,
        "price": listing.price,
        "condition": listing.condition,
        "category_id": listing.category_id,
        "subcategory_id": listing.subcategory_id,
        "city": listing.city,
        "seller_contact": listing.seller_contact,
    }
    current.update(patch.content_changes())
    content = _validate_content(current)

    old_urls = list(listing.images or [])
    keep = old_urls if patch.keep_images is None else list(patch.keep_images)
    foreign = [u for u in keep if u not in old_urls]
    if foreign:
        raise errors.ValidationError(f"Images not attached to this listing: {foreign}")
    _check_image_count(len(keep) + len(new_files))

    final_urls, orphaned = await assets.reconcile(listing.seller_id, listing.id, old_urls, keep, new_files)
    uploaded = final_urls[len(keep):]

    for key, value in content.items():
        setattr(listing, key, value)
    listing.images = final_urls
    listing.status = ListingStatus.PENDING_MODERATION.value
    cleanup.enqueue(db, orphaned, listing.id, reason="edit")
    try:
        await commit_or_conflict(db, listing_id, uploaded=uploaded)
    except errors.ConflictError:
        # the new uploads are now referenced by nothing
        cleanup.enqueue(db, uploaded, listing_id, reason="conflict")
        await commit_or_storage_error(db, listing_id, uploaded=uploaded)
        raise
    logger.info("Updated listing %s by %s; back to moderation", listing.id, caller_id)
    return listing


async def delete_listing(
    db: AsyncSession,
    assets: AssetLifecycleManager,
    caller_id: str,
    caller_is_admin: bool,
    listing_id: str,
) -> None:
    listing = await require_listing(db, listing_id)
    # the identity map may hold an older copy; delete what is stored now
    await db.refresh(listing)
    ensure_can_modify(listing, caller_id, caller_is_admin)
    images = list(listing.images or [])
    failures = await assets.delete_all(images)
    # blob failures never block the record removal; they stay queued for retry
    cleanup.enqueue(db, list(failures), listing.id, reason="delete", errors=failures)
    # by primary key: a concurrent status change must not keep the record alive
    await db.execute(delete(Listing).where(Listing.id == listing_id))
    await commit_or_storage_error(db, listing_id)
    logger.info(
        "Deleted listing %s by %s (%d images, %d cleanup failures)",
        listing_id, caller_id, len(images), len(failures),
    )
