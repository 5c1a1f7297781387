# marketplace/filters.py
"""Pure filtering over an in-memory listing snapshot.

Input order is kept; the snapshot is expected to arrive newest first from
the repository.
"""
from typing import Iterable, List
from .models import ListingStatus
from .schemas import ListingFilter

ACTIVE = ListingStatus.ACTIVE.value
PENDING = ListingStatus.PENDING_MODERATION.value


def matches(listing, filters: ListingFilter) -> bool:
    term = (filters.search_term or "").lower()
    if term and term not in (listing.title or "").lower() and term not in (listing.description or "").lower():
        return False
    if filters.price_min is not None and listing.price < filters.price_min:
        return False
    if filters.price_max is not None and listing.price > filters.price_max:
        return False
    if filters.city and listing.city != filters.city:
        return False
    if filters.condition and listing.condition != filters.condition:
        return False
    if filters.category and listing.category_id != filters.category:
        return False
    return True


def apply(listings: Iterable, filters: ListingFilter = None) -> List:
    """Active listings matching every set facet of `filters`."""
    filters = filters or ListingFilter()
    return [l for l in listings if l.status == ACTIVE and matches(l, filters)]


def pending(listings: Iterable) -> List:
    return [l for l in listings if l.status == PENDING]
