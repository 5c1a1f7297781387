# marketplace/taxonomy.py
"""Static reference data: categories, item conditions and cities."""
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Condition(str, Enum):
    NEW = "new"
    USED_EXCELLENT = "used-excellent"
    USED_GOOD = "used-good"
    USED_FAIR = "used-fair"
    FOR_PARTS = "for-parts"

    @property
    def label(self) -> str:
        return CONDITION_LABELS[self]


CONDITION_LABELS = {
    Condition.NEW: "New",
    Condition.USED_EXCELLENT: "Used - excellent",
    Condition.USED_GOOD: "Used - good",
    Condition.USED_FAIR: "Used - fair",
    Condition.FOR_PARTS: "For parts",
}


@dataclass(frozen=True)
class SubCategory:
    id: str
    name: str

    def to_dict(self) -> Dict:
        return {"id": self.id, "name": self.name}


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    subcategories: Tuple[SubCategory, ...] = field(default_factory=tuple)

    def subcategory(self, subcategory_id: str) -> Optional[SubCategory]:
        for sub in self.subcategories:
            if sub.id == subcategory_id:
                return sub
        return None

    def to_dict(self, with_subcategories: bool = False) -> Dict:
        data = {"id": self.id, "name": self.name}
        if with_subcategories:
            data["subcategories"] = [s.to_dict() for s in self.subcategories]
        return data


def _cat(cat_id: str, name: str, *subs: Tuple[str, str]) -> Category:
    return Category(cat_id, name, tuple(SubCategory(s_id, s_name) for s_id, s_name in subs))


CATEGORIES: List[Category] = [
    _cat(
        "clothing", "Clothing",
        ("hoodies", "Hoodies"),
        ("longsleeves", "Longsleeves"),
        ("sweatshirts", "Sweatshirts"),
        ("tshirts", "T-shirts"),
        ("pants", "Pants"),
        ("outerwear", "Outerwear"),
    ),
    _cat(
        "vapes", "Pods, vapes",
        ("vape_liquids", "Vape liquids"),
        ("cartridges", "Cartridges"),
        ("pods", "POD systems"),
        ("vape_devices", "Vape devices"),
        ("coils", "Coils"),
    ),
    _cat(
        "electronics", "Electronics",
        ("phones", "Phones"),
        ("laptops", "Laptops"),
        ("tablets", "Tablets"),
        ("accessories", "Accessories"),
    ),
    _cat(
        "furniture", "Furniture",
        ("sofas", "Sofas"),
        ("tables", "Tables"),
        ("chairs", "Chairs"),
        ("beds", "Beds"),
    ),
    _cat("other", "Other", ("other_items", "Other items")),
]

_CATEGORY_INDEX = {c.id: c for c in CATEGORIES}

CITIES: List[str] = [
    "Kyiv", "Kharkiv", "Odesa", "Dnipro", "Donetsk",
    "Zaporizhzhia", "Lviv", "Kryvyi Rih", "Mykolaiv", "Mariupol",
    "Luhansk", "Vinnytsia", "Makiivka", "Sevastopol", "Simferopol",
    "Kherson", "Poltava", "Chernihiv", "Cherkasy", "Khmelnytskyi",
    "Chernivtsi", "Zhytomyr", "Sumy", "Rivne", "Ivano-Frankivsk",
    "Kropyvnytskyi", "Ternopil", "Lutsk", "Bila Tserkva", "Kramatorsk",
    "Melitopol", "Uzhhorod", "Berdiansk", "Pavlohrad", "Kamianets-Podilskyi",
]


def get_category(category_id: str) -> Optional[Category]:
    return _CATEGORY_INDEX.get(category_id)


def resolve(category_id: str, subcategory_id: str) -> Optional[Tuple[Category, SubCategory]]:
    """Return the (category, subcategory) pair, or None if the pairing is unknown."""
    category = get_category(category_id)
    if category is None:
        return None
    sub = category.subcategory(subcategory_id)
    if sub is None:
        return None
    return category, sub


def is_known_city(city: str) -> bool:
    return city in CITIES


def is_known_condition(value: str) -> bool:
    return value in {c.value for c in Condition}


def as_dict() -> Dict:
    return {
        "categories": [c.to_dict(with_subcategories=True) for c in CATEGORIES],
        "conditions": [{"id": c.value, "name": c.label} for c in Condition],
        "cities": list(CITIES),
    }
