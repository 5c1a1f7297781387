# marketplace/schemas.py
from pydantic import BaseModel, Field
from typing import Dict, List, Optional
from datetime import datetime


class ListingDraft(BaseModel):
    title: str
    description: str
    price: float
    condition: str
    category_id: str
    subcategory_id: str
    city: str
    seller_contact: str = ""


class ListingPatch(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = None
    condition: Optional[str] = None
    category_id: Optional[str] = None
    subcategory_id: Optional[str] = None
    city: Optional[str] = None
    seller_contact: Optional[str] = None
    # None keeps every current image
    keep_images: Optional[List[str]] = None
    expected_version: Optional[int] = None

    def content_changes(self) -> Dict:
        return self.model_dump(exclude_unset=True, exclude={"keep_images", "expected_version"})


class StatusChange(BaseModel):
    status: str
    expected_version: Optional[int] = None


class TaxonomyRef(BaseModel):
    id: str
    name: str


class ListingOut(BaseModel):
    id: str
    title: str
    description: str
    price: float
    condition: str
    category: TaxonomyRef
    subcategory: TaxonomyRef
    city: str
    images: List[str]
    seller_contact: str
    seller_id: str
    seller_username: Optional[str]
    created_at: datetime
    status: str
    version: int

    class Config:
        from_attributes = True


class ListingFilter(BaseModel):
    search_term: str = ""
    price_min: Optional[float] = None
    price_max: Optional[float] = None
    city: str = ""
    condition: str = ""
    category: str = ""

    def reset(self) -> "ListingFilter":
        """Clear every facet but keep the search term."""
        return ListingFilter(search_term=self.search_term)


class DashboardOut(BaseModel):
    pending: List[ListingOut] = Field(default_factory=list)
    pending_count: int = 0
    active_count: int = 0
    total_users: int = 0
    new_users_24h: int = 0


class CleanupReport(BaseModel):
    attempted: int = 0
    deleted: int = 0
    failed: int = 0
