"""Tests for presence snapshots, snapshot diffing and vendor classification."""

import pytest

from src.models.enums import VendorType
from src.services.classification import classify_vendor, is_reserved_category_name
from src.services.presence import PresenceSnapshot, split_path
from src.services.visibility import diff_snapshots


def snapshot(status=None, types=None, categories=None) -> PresenceSnapshot:
    return PresenceSnapshot(
        vendor_status=status or {}, vendor_type=types or {}, category_status=categories or {}
    )


class TestPresenceSnapshot:
    """Tests for PresenceSnapshot."""

    def test_missing_category_flag_is_visible(self):
        snap = snapshot(status={"1": True})

        assert snap.is_category_visible(1, 10)
        assert snap.is_category_visible("1", "10")

    def test_explicit_false_hides_category(self):
        snap = snapshot(categories={"1": {"10": False}})

        assert not snap.is_category_visible(1, 10)

    def test_only_true_status_is_live(self):
        snap = snapshot(status={"1": True, "2": False, "3": "yes"})

        assert snap.live_vendor_ids() == ["1"]
        assert not snap.is_vendor_live(3)

    def test_with_path_leaf(self):
        snap = snapshot(status={"1": True})

        updated = snap.with_path("vendorStatus/1", False)

        assert snap.is_vendor_live(1)
        assert not updated.is_vendor_live(1)

    def test_with_path_none_removes(self):
        snap = snapshot(categories={"1": {"10": False}})

        updated = snap.with_path("categoryStatus/1/10", None)

        assert updated.category_status == {}
        assert updated.is_category_visible(1, 10)

    def test_with_path_whole_map(self):
        snap = snapshot(status={"1": True})

        updated = snap.with_path("vendorStatus", {"2": True})

        assert updated.live_vendor_ids() == ["2"]

    def test_with_path_vendor_category_map(self):
        snap = snapshot(categories={"1": {"10": True}})

        updated = snap.with_path("categoryStatus/1", {"11": False})

        assert updated.category_status == {"1": {"11": False}}

    @pytest.mark.parametrize(
        "path", ["unknown/1", "", "vendorStatus/1/2", "categoryStatus/1/2/3"]
    )
    def test_invalid_paths(self, path):
        with pytest.raises(ValueError):
            split_path(path)


class TestDiffSnapshots:
    """Tests for diff_snapshots."""

    def test_no_change_is_empty(self):
        snap = snapshot(status={"1": True}, categories={"1": {"10": True}})

        assert diff_snapshots(snap, snap).is_empty

    def test_vendor_going_live(self):
        diff = diff_snapshots(snapshot(), snapshot(status={"1": True}))

        assert diff.vendors_added == {"1"}
        assert not diff.vendors_removed

    def test_vendor_going_offline(self):
        diff = diff_snapshots(snapshot(status={"1": True}), snapshot(status={"1": False}))

        assert diff.vendors_removed == {"1"}

    def test_category_hidden(self):
        prev = snapshot(status={"1": True}, categories={"1": {"10": True}})
        next_ = snapshot(status={"1": True}, categories={"1": {"10": False}})

        diff = diff_snapshots(prev, next_)

        assert diff.categories_removed == {("1", "10")}
        assert not diff.categories_added

    def test_new_visible_category_is_added(self):
        prev = snapshot(status={"1": True})
        next_ = snapshot(status={"1": True}, categories={"1": {"10": True}})

        diff = diff_snapshots(prev, next_)

        assert diff.categories_added == {("1", "10")}

    def test_removed_flag_makes_category_visible(self):
        prev = snapshot(status={"1": True}, categories={"1": {"10": False}})
        next_ = snapshot(status={"1": True})

        assert diff_snapshots(prev, next_).categories_added == {("1", "10")}

    def test_category_changes_of_offline_vendor_ignored(self):
        prev = snapshot(status={"1": False}, categories={"1": {"10": True}})
        next_ = snapshot(status={"1": False}, categories={"1": {"10": False}})

        assert diff_snapshots(prev, next_).is_empty

    def test_custom_scope(self):
        prev = snapshot(status={"1": True}, types={"1": "shop"})
        next_ = snapshot(status={"1": True}, types={"1": "stall"})

        def stalls_only(vendor_id, snap):
            return snap.is_vendor_live(vendor_id) and snap.vendor_type_of(vendor_id) == "stall"

        diff = diff_snapshots(prev, next_, stalls_only)

        assert diff.vendors_added == {"1"}


class TestClassification:
    """Tests for vendor classification rules."""

    @pytest.mark.parametrize("name", ["stall", "Stalls", "My STALL", "installment"])
    def test_reserved_names(self, name):
        assert is_reserved_category_name(name)

    def test_regular_name_not_reserved(self):
        assert not is_reserved_category_name("Burgers")

    def test_stall_category_makes_stall(self):
        assert classify_vendor(["Stall"]) == VendorType.STALL

    def test_other_categories_make_cafe(self):
        assert classify_vendor(["Burgers", "Stalls"], VendorType.STALL) == VendorType.CAFE

    def test_no_categories_keeps_current(self):
        assert classify_vendor([], VendorType.CAFE) == VendorType.CAFE
        assert classify_vendor([]) is None
