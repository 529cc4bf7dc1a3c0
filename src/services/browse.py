"""Browse resolution: the live, visible set of food items for a view.

Two paths produce the same set for the same presence state:

* ``BrowseResolver.resolve`` walks every in-scope vendor from scratch.
* ``LiveBrowseView`` keeps a per-viewer materialized set and patches it from
  consecutive presence snapshots, reloading only vendors and categories whose
  visibility changed.
"""

import logging
from dataclasses import dataclass, field
from enum import StrEnum

from src.exceptions import ValidationError
from src.models.enums import VendorType
from src.services.catalog_repository import CatalogRepository
from src.services.presence import PresenceSnapshot
from src.services.realtime import CatalogChange, PresenceChange, WatchEvent
from src.services.visibility import diff_snapshots

logger = logging.getLogger(__name__)

EntryKey = tuple[int, int]


class ViewKind(StrEnum):
    """Browse view selectors."""

    ALL = "all"
    VENDOR_TYPE = "vendor-type"
    VENDOR = "vendor"
    CATEGORY = "category"


@dataclass(frozen=True)
class ViewSelector:
    """Which slice of the live catalog a viewer is looking at."""

    view: ViewKind = ViewKind.ALL
    vendor_type: str | None = None
    vendor_id: int | None = None
    category_id: int | None = None

    @classmethod
    def build(
        cls,
        view: str = ViewKind.ALL,
        vendor_type: str | None = None,
        vendor_id: int | None = None,
        category_id: int | None = None,
    ) -> "ViewSelector":
        """Validate raw query values into a selector."""
        try:
            kind = ViewKind(view)
        except ValueError as e:
            raise ValidationError(f"Unknown view: {view}") from e

        if kind == ViewKind.VENDOR_TYPE:
            resolved = VendorType.from_presence(vendor_type)
            if resolved is None:
                raise ValidationError("vendorType must be 'stall' or 'shop'")
            return cls(view=kind, vendor_type=resolved.presence_value)
        if kind == ViewKind.VENDOR:
            if vendor_id is None:
                raise ValidationError("vendorId is required for the vendor view")
            return cls(view=kind, vendor_id=vendor_id)
        if kind == ViewKind.CATEGORY:
            if vendor_id is None or category_id is None:
                raise ValidationError("vendorId and categoryId are required for the category view")
            return cls(view=kind, vendor_id=vendor_id, category_id=category_id)
        return cls()

    def includes_vendor(self, vendor_id: str, snapshot: PresenceSnapshot) -> bool:
        if self.view == ViewKind.VENDOR_TYPE:
            return snapshot.vendor_type_of(vendor_id) == self.vendor_type
        if self.view in (ViewKind.VENDOR, ViewKind.CATEGORY):
            return vendor_id == str(self.vendor_id)
        return True

    def includes_category(self, category_id: int) -> bool:
        return self.view != ViewKind.CATEGORY or category_id == self.category_id

    def in_scope(self, vendor_id: str, snapshot: PresenceSnapshot) -> bool:
        """Live and selected by this view."""
        return snapshot.is_vendor_live(vendor_id) and self.includes_vendor(vendor_id, snapshot)


@dataclass(frozen=True, order=True)
class VisibleItem:
    """A food item placement currently visible to customers."""

    vendor_id: int
    category_id: int
    food_item_id: int


@dataclass
class BrowseResult:
    """Cold resolution output. Failed reads contribute zero items."""

    items: list[VisibleItem] = field(default_factory=list)
    failed_vendors: list[int] = field(default_factory=list)
    failed_categories: list[EntryKey] = field(default_factory=list)

    @property
    def food_item_ids(self) -> set[int]:
        return {item.food_item_id for item in self.items}


@dataclass
class ViewPatch:
    """Items entering and leaving a live view after one batch of changes."""

    added: list[VisibleItem] = field(default_factory=list)
    removed: list[VisibleItem] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.added and not self.removed


def _as_id(raw: str) -> int | None:
    try:
        return int(raw)
    except (TypeError, ValueError):
        logger.warning(f"Ignoring non-numeric presence key: {raw!r}")
        return None


class BrowseResolver:
    """Resolves visible food items from a presence snapshot and the durable catalog."""

    def __init__(self, catalog: CatalogRepository):
        self.catalog = catalog

    def resolve(
        self, snapshot: PresenceSnapshot, selector: ViewSelector | None = None
    ) -> BrowseResult:
        """Cold resolution over every live vendor in the view."""
        selector = selector or ViewSelector()
        result = BrowseResult()

        for raw_vendor_id in snapshot.live_vendor_ids():
            if not selector.includes_vendor(raw_vendor_id, snapshot):
                continue
            vendor_id = _as_id(raw_vendor_id)
            if vendor_id is None:
                continue

            entries, failed_categories = self.load_vendor(vendor_id, snapshot, selector)
            if entries is None:
                result.failed_vendors.append(vendor_id)
                continue
            result.failed_categories.extend(failed_categories)
            for (v_id, c_id), food_item_ids in entries.items():
                result.items.extend(VisibleItem(v_id, c_id, f_id) for f_id in food_item_ids)

        logger.debug(
            f"Resolved {len(result.items)} items for view {selector.view} "
            f"({len(result.failed_vendors)} vendors failed)"
        )
        return result

    def load_vendor(
        self, vendor_id: int, snapshot: PresenceSnapshot, selector: ViewSelector
    ) -> tuple[dict[EntryKey, list[int]] | None, list[EntryKey]]:
        """Load every visible category of one vendor.

        Returns ``(None, [])`` when the vendor's categories could not be read.
        """
        try:
            if self.catalog.get_vendor(vendor_id) is None:
                return {}, []
            categories = self.catalog.list_categories(vendor_id)
        except Exception as e:
            logger.error(f"Failed to read categories for vendor {vendor_id}: {e}", exc_info=True)
            self.catalog.recover()
            return None, []

        entries: dict[EntryKey, list[int]] = {}
        failed: list[EntryKey] = []
        for category in categories:
            if not selector.includes_category(category.id):
                continue
            if not snapshot.is_category_visible(vendor_id, category.id):
                continue
            try:
                entries[(vendor_id, category.id)] = self.catalog.list_food_item_ids(category.id)
            except Exception as e:
                logger.error(
                    f"Failed to read items for vendor {vendor_id}, category {category.id}: {e}",
                    exc_info=True,
                )
                self.catalog.recover()
                failed.append((vendor_id, category.id))
        return entries, failed

    def load_category(self, vendor_id: int, category_id: int) -> list[int] | None:
        """Load one category's items, or None when it no longer exists durably."""
        if self.catalog.get_vendor(vendor_id) is None:
            return None
        if self.catalog.get_category(vendor_id, category_id) is None:
            return None
        return self.catalog.list_food_item_ids(category_id)


class LiveBrowseView:
    """Per-viewer materialized browse result maintained from presence changes.

    Not shared between viewers. Feed it batches from ``PresenceWatcher.watch``;
    starting from an empty snapshot, the first batch loads the whole view.
    """

    def __init__(self, resolver: BrowseResolver, selector: ViewSelector | None = None):
        self.resolver = resolver
        self.selector = selector or ViewSelector()
        self.snapshot = PresenceSnapshot()
        self._entries: dict[EntryKey, list[int]] = {}

    @property
    def items(self) -> list[VisibleItem]:
        return [
            VisibleItem(vendor_id, category_id, food_item_id)
            for (vendor_id, category_id), food_item_ids in self._entries.items()
            for food_item_id in food_item_ids
        ]

    @property
    def food_item_ids(self) -> set[int]:
        return {item.food_item_id for item in self.items}

    def apply(self, events: list[WatchEvent]) -> ViewPatch:
        """Apply one coalesced batch of presence and catalog changes."""
        before = set(self.items)

        snapshot = self.snapshot
        touched: list[CatalogChange] = []
        for event in events:
            if isinstance(event, PresenceChange):
                snapshot = snapshot.with_path(event.path, event.value)
            else:
                touched.append(event)

        self.advance(snapshot)
        for change in touched:
            self.refresh_category(change.vendor_id, change.category_id)

        after = set(self.items)
        return ViewPatch(added=sorted(after - before), removed=sorted(before - after))

    def advance(self, snapshot: PresenceSnapshot) -> None:
        """Patch the view from the current snapshot to ``snapshot``."""
        diff = diff_snapshots(self.snapshot, snapshot, self.selector.in_scope)
        self.snapshot = snapshot

        for raw_vendor_id in diff.vendors_removed:
            self._drop_vendor(raw_vendor_id)

        for raw_vendor_id in diff.vendors_added:
            vendor_id = _as_id(raw_vendor_id)
            if vendor_id is None:
                continue
            self._drop_vendor(raw_vendor_id)
            entries, _ = self.resolver.load_vendor(vendor_id, snapshot, self.selector)
            self._entries.update(entries or {})

        for raw_vendor_id, raw_category_id in diff.categories_removed:
            vendor_id, category_id = _as_id(raw_vendor_id), _as_id(raw_category_id)
            self._entries.pop((vendor_id, category_id), None)

        for raw_vendor_id, raw_category_id in diff.categories_added:
            vendor_id, category_id = _as_id(raw_vendor_id), _as_id(raw_category_id)
            if vendor_id is not None and category_id is not None:
                self.refresh_category(vendor_id, category_id)

    def refresh_category(self, vendor_id: int, category_id: int | None) -> None:
        """Re-check one category against the durable store."""
        if category_id is None:
            # Vendor-wide catalog change
            if self.selector.in_scope(str(vendor_id), self.snapshot):
                self._drop_vendor(str(vendor_id))
                entries, _ = self.resolver.load_vendor(vendor_id, self.snapshot, self.selector)
                self._entries.update(entries or {})
            return

        key = (vendor_id, category_id)
        if not (
            self.selector.in_scope(str(vendor_id), self.snapshot)
            and self.selector.includes_category(category_id)
            and self.snapshot.is_category_visible(vendor_id, category_id)
        ):
            self._entries.pop(key, None)
            return

        try:
            food_item_ids = self.resolver.load_category(vendor_id, category_id)
        except Exception as e:
            logger.error(
                f"Failed to refresh vendor {vendor_id}, category {category_id}: {e}",
                exc_info=True,
            )
            self.resolver.catalog.recover()
            food_item_ids = None

        if food_item_ids is None:
            self._entries.pop(key, None)
        else:
            self._entries[key] = food_item_ids

    def _drop_vendor(self, raw_vendor_id: str) -> None:
        vendor_id = _as_id(raw_vendor_id)
        for key in [key for key in self._entries if key[0] == vendor_id]:
            del self._entries[key]
