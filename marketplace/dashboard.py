# marketplace/dashboard.py
"""Admin dashboard aggregation.

Read-only: counts come from the listing snapshot passed in and from direct
count queries on the users table. Nothing is cached between calls.
"""
from datetime import datetime, timedelta
from typing import Sequence, Tuple
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from . import crud, filters
from .models import ListingStatus, User
from .schemas import DashboardOut, ListingOut
from .utils import utcnow

NEW_USER_WINDOW = timedelta(hours=24)


def summarize(listings: Sequence) -> Tuple[list, int, int]:
    queue = filters.pending(listings)
    active = sum(1 for l in listings if l.status == ListingStatus.ACTIVE.value)
    return queue, len(queue), active


async def count_users(db: AsyncSession, now: datetime = None) -> Tuple[int, int]:
    now = now or utcnow()
    total = await db.scalar(select(func.count()).select_from(User))
    recent = await db.scalar(
        select(func.count()).select_from(User).where(User.created_at >= now - NEW_USER_WINDOW)
    )
    return int(total or 0), int(recent or 0)


async def build_dashboard(db: AsyncSession, now: datetime = None) -> DashboardOut:
    snapshot = await crud.list_listings(db)
    queue, pending_count, active_count = summarize(snapshot)
    total_users, new_users = await count_users(db, now)
    return DashboardOut(
        pending=[ListingOut.model_validate(l) for l in queue],
        pending_count=pending_count,
        active_count=active_count,
        total_users=total_users,
        new_users_24h=new_users,
    )
