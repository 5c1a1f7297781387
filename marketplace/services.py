# marketplace/services.py
from sqlalchemy.ext.asyncio import AsyncSession
from . import crud, filters
from .models import User
from .schemas import ListingFilter
from typing import List, Optional


def seller_display_name(user: Optional[User]) -> str:
    # captured once at creation; later profile renames do not propagate
    if user is None:
        return "Unknown Seller"
    if user.username:
        return user.username
    if user.email:
        return user.email.split("@")[0]
    return "Unknown Seller"


async def public_feed(db: AsyncSession, listing_filter: ListingFilter = None) -> List:
    """Fresh snapshot from the store, narrowed to active listings matching the filter."""
    snapshot = await crud.list_listings(db)
    return filters.apply(snapshot, listing_filter or ListingFilter())
