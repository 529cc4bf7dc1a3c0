"""Full-scan catalog search ranked by where the query matched.

There is no index: each query walks every live vendor's visible categories,
so cost grows with vendors x categories x items.
"""

import logging
from enum import IntEnum

from src.exceptions import ValidationError
from src.models.category import Category
from src.models.food_item import FoodItem
from src.models.vendor import Vendor
from src.services.catalog_repository import CatalogRepository
from src.services.presence import PresenceStore

logger = logging.getLogger(__name__)


class MatchTier(IntEnum):
    """Match locality, best first."""

    NAME = 1
    DESCRIPTION = 2
    CATEGORY_NAME = 3
    VENDOR_NAME = 4
    VENDOR_DESCRIPTION = 5
    LANDMARK = 6


def _contains(text: str | None, query: str) -> bool:
    return bool(text) and query in text.lower()


def match_priority(
    query: str, food_item: FoodItem, category: Category, vendor: Vendor
) -> MatchTier | None:
    """First tier whose text contains the query (case-insensitive), or None."""
    q = query.lower()
    fields = (
        (MatchTier.NAME, food_item.name),
        (MatchTier.DESCRIPTION, food_item.description),
        (MatchTier.CATEGORY_NAME, category.name),
        (MatchTier.VENDOR_NAME, vendor.name),
        (MatchTier.VENDOR_DESCRIPTION, vendor.description),
        (MatchTier.LANDMARK, vendor.landmark),
    )
    for tier, text in fields:
        if _contains(text, q):
            return tier
    return None


class SearchService:
    """Search over live vendors and visible categories."""

    def __init__(self, catalog: CatalogRepository, presence: PresenceStore):
        self.catalog = catalog
        self.presence = presence

    def search(self, query: str | None) -> list[int]:
        """Return matching food item ids, best match first.

        Ties keep catalog enumeration order.
        """
        query = (query or "").strip().lower()
        if not query:
            raise ValidationError("Query parameter 'q' is required")

        snapshot = self.presence.snapshot()
        matches: list[tuple[MatchTier, int]] = []

        for raw_vendor_id in snapshot.live_vendor_ids():
            try:
                vendor_id = int(raw_vendor_id)
            except ValueError:
                logger.warning(f"Ignoring non-numeric vendor id in presence: {raw_vendor_id!r}")
                continue

            vendor_matches: list[tuple[MatchTier, int]] = []
            try:
                vendor = self.catalog.get_vendor(vendor_id)
                if vendor is None:
                    continue
                for category in self.catalog.list_categories(vendor_id):
                    if not snapshot.is_category_visible(vendor_id, category.id):
                        continue
                    for food_item in self.catalog.list_food_items(category.id):
                        tier = match_priority(query, food_item, category, vendor)
                        if tier is not None:
                            vendor_matches.append((tier, food_item.id))
            except Exception as e:
                logger.error(f"Search skipped vendor {vendor_id}: {e}", exc_info=True)
                self.catalog.recover()
                continue
            matches.extend(vendor_matches)

        # A food item placed in several categories is listed once, at its best tier
        best: dict[int, tuple[MatchTier, int]] = {}
        for position, (tier, food_item_id) in enumerate(matches):
            if food_item_id not in best or tier < best[food_item_id][0]:
                best[food_item_id] = (tier, position)
        return sorted(best, key=lambda food_item_id: best[food_item_id])
