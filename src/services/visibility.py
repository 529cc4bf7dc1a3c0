"""Visibility rules and snapshot diffing.

A food item is customer-visible iff its vendor is live, its category is not
explicitly hidden, and both still exist in the durable store. The functions here
cover the presence half of that rule; existence is checked by the resolvers.
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from src.services.presence import PresenceSnapshot

ScopeCheck = Callable[[str, PresenceSnapshot], bool]


def vendor_in_scope(vendor_id: str, snapshot: PresenceSnapshot) -> bool:
    """Default scope: every live vendor."""
    return snapshot.is_vendor_live(vendor_id)


@dataclass(frozen=True)
class VisibilityDiff:
    """What changed between two presence snapshots, from one viewer's scope.

    ``categories_added`` also holds categories whose flag changed while staying
    visible (for example a freshly created category going from absent to true);
    those must be re-checked against the durable store.
    """

    vendors_added: frozenset[str] = field(default_factory=frozenset)
    vendors_removed: frozenset[str] = field(default_factory=frozenset)
    categories_added: frozenset[tuple[str, str]] = field(default_factory=frozenset)
    categories_removed: frozenset[tuple[str, str]] = field(default_factory=frozenset)

    @property
    def is_empty(self) -> bool:
        return not (
            self.vendors_added
            or self.vendors_removed
            or self.categories_added
            or self.categories_removed
        )


def diff_snapshots(
    prev: PresenceSnapshot,
    next_: PresenceSnapshot,
    in_scope: ScopeCheck = vendor_in_scope,
) -> VisibilityDiff:
    """Compute the minimal visibility patch between two consecutive snapshots."""
    vendor_ids = (
        set(prev.vendor_status)
        | set(next_.vendor_status)
        | set(prev.vendor_type)
        | set(next_.vendor_type)
        | set(prev.category_status)
        | set(next_.category_status)
    )

    vendors_added: set[str] = set()
    vendors_removed: set[str] = set()
    categories_added: set[tuple[str, str]] = set()
    categories_removed: set[tuple[str, str]] = set()

    for vendor_id in vendor_ids:
        was_in = in_scope(vendor_id, prev)
        is_in = in_scope(vendor_id, next_)

        if was_in and not is_in:
            vendors_removed.add(vendor_id)
            continue
        if is_in and not was_in:
            vendors_added.add(vendor_id)
            continue
        if not is_in:
            continue

        before = prev.category_status.get(vendor_id, {})
        after = next_.category_status.get(vendor_id, {})
        for category_id in set(before) | set(after):
            if before.get(category_id) == after.get(category_id):
                continue
            if next_.is_category_visible(vendor_id, category_id):
                categories_added.add((vendor_id, category_id))
            else:
                categories_removed.add((vendor_id, category_id))

    return VisibilityDiff(
        vendors_added=frozenset(vendors_added),
        vendors_removed=frozenset(vendors_removed),
        categories_added=frozenset(categories_added),
        categories_removed=frozenset(categories_removed),
    )
