"""Vendor classification derived from category names."""

from collections.abc import Iterable

from src.models.enums import VendorType

STALL_CATEGORY_NAME = "stall"


def is_reserved_category_name(name: str) -> bool:
    """Names containing "stall" (any case) are reserved for stall vendors."""
    return STALL_CATEGORY_NAME in name.lower()


def classify_vendor(
    category_names: Iterable[str], current: VendorType | None = None
) -> VendorType | None:
    """Classify a vendor from its category names.

    A vendor is a stall iff one of its categories is named "stall". A vendor with
    categories and no such name is a cafe. Without categories the current
    classification is kept.
    """
    names = [name.strip().lower() for name in category_names]
    if not names:
        return current
    if STALL_CATEGORY_NAME in names:
        return VendorType.STALL
    return VendorType.CAFE
