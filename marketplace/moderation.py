# marketplace/moderation.py
"""Moderation state machine.

Listings start in ``pending_moderation`` and go back there on every content
edit (see `crud.update_listing`). Administrators move them out of the queue
with the transitions below. ``sold`` is never left by anything in the core.

By default `set_status` only accepts the transitions in ADMIN_TRANSITIONS.
``MODERATION_PERMISSIVE_STATUS=1`` switches back to an unconditional
overwrite of the status field.
"""
from typing import Optional
from sqlalchemy.ext.asyncio import AsyncSession
from . import errors
from .crud import check_version, commit_or_conflict, require_listing
from .models import Listing, ListingStatus
from .utils import env_flag, logger

PENDING = ListingStatus.PENDING_MODERATION.value
ACTIVE = ListingStatus.ACTIVE.value
REJECTED = ListingStatus.REJECTED.value
SOLD = ListingStatus.SOLD.value

ADMIN_TRANSITIONS = {
    (PENDING, ACTIVE): "approve",
    (PENDING, REJECTED): "reject",
}


def permissive_mode() -> bool:
    return env_flag("MODERATION_PERMISSIVE_STATUS")


def normalize_status(status: str) -> str:
    try:
        return ListingStatus(status).value
    except ValueError:
        raise errors.ValidationError(f"Unknown listing status: {status!r}")


def can_transition(current: str, target: str, permissive: bool = False) -> bool:
    if permissive:
        return True
    return (current, target) in ADMIN_TRANSITIONS


async def set_status(
    db: AsyncSession,
    caller_is_admin: bool,
    listing_id: str,
    status: str,
    expected_version: Optional[int] = None,
) -> Listing:
    if not caller_is_admin:
        raise errors.AuthorizationError("Only administrators can change listing status")
    target = normalize_status(status)
    listing = await require_listing(db, listing_id)
    check_version(listing, expected_version)
    current = listing.status
    if not can_transition(current, target, permissive=permissive_mode()):
        raise errors.IllegalTransitionError(current, target)
    listing.status = target
    await commit_or_conflict(db, listing_id)
    logger.info("Listing %s status %s -> %s", listing_id, current, target)
    return listing


async def approve(db: AsyncSession, caller_is_admin: bool, listing_id: str, expected_version: Optional[int] = None) -> Listing:
    return await set_status(db, caller_is_admin, listing_id, ACTIVE, expected_version)


async def reject(db: AsyncSession, caller_is_admin: bool, listing_id: str, expected_version: Optional[int] = None) -> Listing:
    return await set_status(db, caller_is_admin, listing_id, REJECTED, expected_version)
