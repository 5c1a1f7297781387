# marketplace/api/routes.py
from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Header, HTTPException, Query, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional
from .. import cleanup, crud, filters, moderation, schemas, services, taxonomy
from ..assets import AssetLifecycleManager, ImageFile
from ..dashboard import build_dashboard
from ..db import get_db, get_session_factory
from ..errors import NotFoundError
from ..models import User
from ..storage import BlobStore, get_blob_store
from ..utils import logger

router = APIRouter()


def get_assets(store: BlobStore = Depends(get_blob_store)) -> AssetLifecycleManager:
    return AssetLifecycleManager(store)


async def get_current_user(
    x_user_id: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
) -> User:
    # identity is owned by the provider; the core only reads it
    if not x_user_id:
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    user = await db.get(User, x_user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="Unknown user")
    return user


async def get_admin(user: User = Depends(get_current_user)) -> User:
    if not user.is_admin:
        raise HTTPException(status_code=403, detail="Administrator access required")
    return user


async def _read_files(files: Optional[List[UploadFile]]) -> List[ImageFile]:
    images = []
    for f in files or []:
        images.append(ImageFile(
            filename=f.filename or "image",
            content=await f.read(),
            content_type=f.content_type or "application/octet-stream",
        ))
    return images


async def drain_in_background(session_factory, assets: AssetLifecycleManager):
    async with session_factory() as db:
        try:
            await cleanup.drain(db, assets)
        except Exception:
            # entries stay queued for the scheduler
            logger.exception("Background blob cleanup failed")


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/taxonomy")
def get_taxonomy():
    return taxonomy.as_dict()


@router.get("/listings", response_model=List[schemas.ListingOut])
async def listings(
    search_term: str = "",
    price_min: float | None = Query(None),
    price_max: float | None = Query(None),
    city: str = "",
    condition: str = "",
    category: str = "",
    db: AsyncSession = Depends(get_db),
):
    listing_filter = schemas.ListingFilter(
        search_term=search_term,
        price_min=price_min,
        price_max=price_max,
        city=city,
        condition=condition,
        category=category,
    )
    return await services.public_feed(db, listing_filter)


@router.get("/listings/{listing_id}", response_model=schemas.ListingOut)
async def get_listing(listing_id: str, db: AsyncSession = Depends(get_db)):
    obj = await crud.get_listing(db, listing_id)
    if not obj:
        raise NotFoundError(f"Listing {listing_id} not found")
    return obj


@router.get("/users/{owner_id}/listings", response_model=List[schemas.ListingOut])
async def owner_listings(
    owner_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    owned = await crud.list_listings_for_owner(db, owner_id)
    if user.id == owner_id or user.is_admin:
        return owned
    # other callers only see what the public feed would show
    return filters.apply(owned)


@router.post("/listings", response_model=schemas.ListingOut, status_code=201)
async def create_listing(
    title: str = Form(...),
    description: str = Form(...),
    price: float = Form(...),
    condition: str = Form(...),
    category_id: str = Form(...),
    subcategory_id: str = Form(...),
    city: str = Form(...),
    seller_contact: str = Form(""),
    images: Optional[List[UploadFile]] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    assets: AssetLifecycleManager = Depends(get_assets),
):
    draft = schemas.ListingDraft(
        title=title,
        description=description,
        price=price,
        condition=condition,
        category_id=category_id,
        subcategory_id=subcategory_id,
        city=city,
        seller_contact=seller_contact,
    )
    files = await _read_files(images)
    return await crud.create_listing(db, assets, user.id, services.seller_display_name(user), draft, files)


@router.patch("/listings/{listing_id}", response_model=schemas.ListingOut)
async def update_listing(
    listing_id: str,
    background: BackgroundTasks,
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    price: Optional[float] = Form(None),
    condition: Optional[str] = Form(None),
    category_id: Optional[str] = Form(None),
    subcategory_id: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    seller_contact: Optional[str] = Form(None),
    keep_images: Optional[List[str]] = Form(None),
    expected_version: Optional[int] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    assets: AssetLifecycleManager = Depends(get_assets),
    session_factory=Depends(get_session_factory),
):
    if keep_images is not None:
        # a lone empty value means "keep none"
        keep_images = [u for u in keep_images if u]
    fields = {
        "title": title,
        "description": description,
        "price": price,
        "condition": condition,
        "category_id": category_id,
        "subcategory_id": subcategory_id,
        "city": city,
        "seller_contact": seller_contact,
        "keep_images": keep_images,
        "expected_version": expected_version,
    }
    patch = schemas.ListingPatch(**{k: v for k, v in fields.items() if v is not None})
    files = await _read_files(images)
    obj = await crud.update_listing(db, assets, user.id, user.is_admin, listing_id, patch, files)
    background.add_task(drain_in_background, session_factory, assets)
    return obj


@router.delete("/listings/{listing_id}")
async def delete_listing(
    listing_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    assets: AssetLifecycleManager = Depends(get_assets),
):
    await crud.delete_listing(db, assets, user.id, user.is_admin, listing_id)
    return {"status": "deleted"}


@router.post("/admin/listings/{listing_id}/approve", response_model=schemas.ListingOut)
async def approve_listing(listing_id: str, admin: User = Depends(get_admin), db: AsyncSession = Depends(get_db)):
    return await moderation.approve(db, admin.is_admin, listing_id)


@router.post("/admin/listings/{listing_id}/reject", response_model=schemas.ListingOut)
async def reject_listing(listing_id: str, admin: User = Depends(get_admin), db: AsyncSession = Depends(get_db)):
    return await moderation.reject(db, admin.is_admin, listing_id)


@router.put("/admin/listings/{listing_id}/status", response_model=schemas.ListingOut)
async def set_listing_status(
    listing_id: str,
    payload: schemas.StatusChange,
    admin: User = Depends(get_admin),
    db: AsyncSession = Depends(get_db),
):
    return await moderation.set_status(db, admin.is_admin, listing_id, payload.status, payload.expected_version)


@router.get("/admin/dashboard", response_model=schemas.DashboardOut)
async def dashboard(admin: User = Depends(get_admin), db: AsyncSession = Depends(get_db)):
    return await build_dashboard(db)


@router.post("/admin/cleanup", response_model=schemas.CleanupReport)
async def run_cleanup(
    limit: int = 100,
    admin: User = Depends(get_admin),
    db: AsyncSession = Depends(get_db),
    assets: AssetLifecycleManager = Depends(get_assets),
):
    return await cleanup.drain(db, assets, limit=limit)
