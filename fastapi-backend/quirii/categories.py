"""
Complaint categories and the rules deciding who may open them.

Categories fall into three disjoint partitions. A student is assigned one
hostel category at registration (looked up from their registration number)
and may only read or post into that hostel plus the common sections. Admins
may access everything.

The registration-number -> hostel table is data: it ships as
``data/hostel_mapping.json`` and is loaded once into a read-only mapping.
Set ``HOSTEL_MAPPING_PATH`` to load a different file.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple
import json
import logging

from .config import get_settings

logger = logging.getLogger("quirii.categories")

LADIES_HOSTELS: Tuple[str, ...] = ("LH1", "LH2", "LH3")
MENS_HOSTELS: Tuple[str, ...] = ("MH2", "MH3", "MH4", "MH5", "MH6")
COMMON_SECTIONS: Tuple[str, ...] = ("AB1", "AB2", "CB", "Sports", "Examinations", "Others")

HOSTEL_CATEGORIES: Tuple[str, ...] = LADIES_HOSTELS + MENS_HOSTELS
ALL_CATEGORIES: Tuple[str, ...] = LADIES_HOSTELS + MENS_HOSTELS + COMMON_SECTIONS

# Sidebar grouping: display label -> members
CATEGORY_GROUPS: Tuple[Tuple[str, Tuple[str, ...]], ...] = (
    ("Ladies Hostels", LADIES_HOSTELS),
    ("Men's Hostels", MENS_HOSTELS),
    ("Common Sections", COMMON_SECTIONS),
)

_DEFAULT_MAPPING_PATH = Path(__file__).resolve().parent / "data" / "hostel_mapping.json"


def normalize_registration_number(reg_number: str) -> str:
    return reg_number.strip().upper()


def load_hostel_mapping(path: Optional[Path] = None) -> Mapping[str, str]:
    """Read a registration-number -> hostel JSON object into a read-only mapping.

    Raises ValueError when the file maps a number to something that is not a
    hostel category.
    """
    source = Path(path) if path else _DEFAULT_MAPPING_PATH
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise ValueError(f"{source}: expected a JSON object of registration number -> hostel")

    mapping: Dict[str, str] = {}
    for reg_number, hostel in raw.items():
        if hostel not in HOSTEL_CATEGORIES:
            raise ValueError(f"{source}: {reg_number!r} maps to unknown hostel {hostel!r}")
        mapping[normalize_registration_number(reg_number)] = hostel

    logger.info("Loaded %d hostel assignments from %s", len(mapping), source)
    return MappingProxyType(mapping)


@lru_cache()
def get_hostel_mapping() -> Mapping[str, str]:
    override = get_settings().hostel_mapping_path
    return load_hostel_mapping(Path(override) if override else None)


def hostel_for_registration(reg_number: str) -> Optional[str]:
    """Return the hostel assigned to a registration number, or None if unlisted."""
    if not reg_number:
        return None
    return get_hostel_mapping().get(normalize_registration_number(reg_number))


def is_known_category(category: Optional[str]) -> bool:
    return category in ALL_CATEGORIES


def can_access_category(user_hostel: Optional[str], category: str, is_admin: bool = False) -> bool:
    """Single predicate for both viewing a category and posting into it."""
    if is_admin:
        return True
    if category in COMMON_SECTIONS:
        return True
    return user_hostel is not None and category == user_hostel


def accessible_categories(user_hostel: Optional[str], is_admin: bool = False) -> List[str]:
    return [c for c in ALL_CATEGORIES if can_access_category(user_hostel, c, is_admin)]


def category_groups(user_hostel: Optional[str], is_admin: bool = False) -> List[dict]:
    """Partitions with per-category access flags, in navigation order."""
    return [
        {
            "label": label,
            "categories": [
                {"name": name, "accessible": can_access_category(user_hostel, name, is_admin)}
                for name in members
            ],
        }
        for label, members in CATEGORY_GROUPS
    ]


__all__ = [
    "LADIES_HOSTELS",
    "MENS_HOSTELS",
    "COMMON_SECTIONS",
    "HOSTEL_CATEGORIES",
    "ALL_CATEGORIES",
    "CATEGORY_GROUPS",
    "load_hostel_mapping",
    "get_hostel_mapping",
    "hostel_for_registration",
    "normalize_registration_number",
    "is_known_category",
    "can_access_category",
    "accessible_categories",
    "category_groups",
]
