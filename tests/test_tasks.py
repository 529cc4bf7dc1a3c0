"""Tests for the catalog reconciliation task."""

from datetime import UTC, datetime, timedelta
from unittest.mock import patch

from src.models import Category, FoodItem
from src.services.catalog_service import CatalogService
from src.tasks.catalog_sweep import sweep_catalog


def test_sweep_catalog_repairs_interrupted_writes(db, presence, images, vendor):
    service = CatalogService(db, presence, images)
    pending = service.add_category(vendor.id, "Snacks")
    service.add_food_item(
        vendor.id, pending.id, name="Samosa", price=2.5, photo_urls=["https://img.test/a.jpg"]
    )
    pending.mark_for_deletion()
    kept = service.add_category(vendor.id, "Drinks")
    db.add(
        FoodItem(
            seller_id=vendor.id,
            name="Lost",
            price=1.0,
            photo_urls=["https://img.test/lost"],
            created_at=datetime.now(UTC) - timedelta(days=1),
        )
    )
    db.commit()
    presence.set(f"categoryStatus/{vendor.id}/4242", False)
    kept_id = kept.id

    with (
        patch("src.tasks.catalog_sweep.SessionLocal", return_value=db),
        patch("src.tasks.catalog_sweep.get_presence_store", return_value=presence),
    ):
        result = sweep_catalog()

    assert result["success"] is True
    assert result["pending_deletions"] == []
    assert len(result["resumed_deletions"]) == 1
    assert len(result["orphans_deleted"]) == 1
    assert result["flags_pruned"] == 1
    assert [c.id for c in db.query(Category).all()] == [kept_id]
    assert db.query(FoodItem).count() == 0
    assert presence.get(f"categoryStatus/{vendor.id}") == {str(kept_id): True}
