"""Catalog mutation service.

Every structural mutation writes the durable store first and then mirrors the
visibility flags into the presence store. The two stores are not linked
transactionally; read paths re-check durable existence, so a presence flag that
outlives its category is harmless.
"""

import logging
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from src.exceptions import NotFoundError, PartialFailureError, UpstreamUnavailable, ValidationError
from src.models.category import Category
from src.models.category_item import CategoryItem
from src.models.enums import VendorType
from src.models.food_item import FoodItem
from src.models.vendor import Vendor
from src.services.catalog_repository import CatalogRepository
from src.services.classification import classify_vendor, is_reserved_category_name
from src.services.image_storage import ImageStorageClient
from src.services.presence import CatalogEventType, PresenceStore

logger = logging.getLogger(__name__)


def _require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        raise ValidationError(f"{field_name} is required")
    return value.strip()


def _validate_price(price: float | None) -> float:
    if price is None:
        raise ValidationError("Price is required")
    if price <= 0:
        raise ValidationError("Price must be greater than zero")
    return price


def _validate_photo_urls(photo_urls: list[str] | None) -> list[str]:
    urls = [url.strip() for url in photo_urls or [] if url and url.strip()]
    if not urls:
        raise ValidationError("At least one photo URL is required")
    return urls


class CatalogService:
    """Service for vendor catalog reads and mutations."""

    def __init__(
        self,
        db: Session,
        presence: PresenceStore,
        images: ImageStorageClient | None = None,
    ):
        self.db = db
        self.presence = presence
        self.images = images or ImageStorageClient()
        self.catalog = CatalogRepository(db)

    # Lookups

    def get_vendor(self, vendor_id: int) -> Vendor:
        vendor = self.catalog.get_vendor(vendor_id)
        if vendor is None:
            raise NotFoundError("Vendor not found")
        return vendor

    def get_category(self, vendor_id: int, category_id: int) -> Category:
        category = self.catalog.get_category(vendor_id, category_id)
        if category is None:
            raise NotFoundError("Category not found")
        return category

    def get_food_item(self, vendor_id: int, category_id: int, food_item_id: int) -> FoodItem:
        """Get a food item placed in one of the vendor's categories."""
        self._get_placements(vendor_id, category_id, food_item_id)
        food_item = (
            self.db.query(FoodItem)
            .filter(FoodItem.id == food_item_id, FoodItem.seller_id == vendor_id)
            .first()
        )
        if food_item is None:
            raise NotFoundError("Food item not found")
        return food_item

    def _get_placements(
        self, vendor_id: int, category_id: int, food_item_id: int
    ) -> list[CategoryItem]:
        self.get_category(vendor_id, category_id)
        placements = (
            self.db.query(CategoryItem)
            .filter(
                CategoryItem.category_id == category_id,
                CategoryItem.food_item_id == food_item_id,
            )
            .all()
        )
        if not placements:
            raise NotFoundError("Item not found in seller's menu")
        return placements

    # Paginated reads

    def list_categories_page(
        self, vendor_id: int, limit: int, last_doc: int | None = None
    ) -> dict[str, Any]:
        """Newest-first page of a vendor's categories."""
        query = self.db.query(Category).filter(
            Category.vendor_id == vendor_id, Category.deletion_started_at.is_(None)
        )
        if last_doc is not None:
            # Compare against the stored timestamp of the cursor row
            cursor_created_at = (
                select(Category.created_at)
                .where(Category.id == last_doc, Category.vendor_id == vendor_id)
                .scalar_subquery()
            )
            query = query.filter(
                or_(
                    Category.created_at < cursor_created_at,
                    and_(Category.created_at == cursor_created_at, Category.id < last_doc),
                )
            )

        rows = query.order_by(Category.created_at.desc(), Category.id.desc()).limit(limit + 1).all()
        categories = rows[:limit]
        return {
            "categories": categories,
            "last_doc": categories[-1].id if categories else None,
            "has_more": len(rows) > limit,
        }

    def list_category_items_page(
        self, vendor_id: int, category_id: int, limit: int, last_doc_id: int | None = None
    ) -> dict[str, Any]:
        """Page of a category's food items ordered by food item id."""
        category = self.get_category(vendor_id, category_id)

        query = self.db.query(CategoryItem.food_item_id).filter(
            CategoryItem.category_id == category_id
        )
        if last_doc_id is not None:
            query = query.filter(CategoryItem.food_item_id > last_doc_id)
        food_item_ids = [
            food_item_id
            for (food_item_id,) in query.order_by(CategoryItem.food_item_id).limit(limit).all()
        ]

        by_id = self.catalog.get_food_items(food_item_ids)
        items = [by_id[food_item_id] for food_item_id in food_item_ids if food_item_id in by_id]
        return {
            "items": items,
            "last_doc": food_item_ids[-1] if food_item_ids else None,
            "has_more": len(food_item_ids) == limit,
            "category_name": category.name,
        }

    # Categories

    def add_category(
        self,
        vendor_id: int,
        name: str | None,
        visible: bool | None = True,
        photo_url: str | None = None,
    ) -> Category:
        """Create a category, then publish its visibility and the vendor type."""
        name = _require_text(name, "Category name")
        vendor = self.get_vendor(vendor_id)
        existing = self.catalog.list_categories(vendor_id)

        self._check_category_name(vendor, [c.name for c in existing] + [name], name)
        if vendor.type == VendorType.STALL and existing:
            raise ValidationError("Stalls can only have one category")

        visible = True if visible is None else visible
        category = Category(
            vendor_id=vendor_id,
            name=name,
            visibility=visible,
            photo_url=photo_url,
        )
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        logger.info(f"Vendor {vendor_id} added category {category.id} '{name}'")

        self.presence.set_category_visibility(vendor_id, category.id, visible)
        self.sync_vendor_type(vendor)
        self.presence.publish_catalog_event(
            vendor_id, CatalogEventType.CATEGORY_CREATED, category.id
        )
        return category

    def update_category(
        self,
        vendor_id: int,
        category_id: int,
        name: str | None = None,
        visible: bool | None = None,
        photo_url: str | None = None,
    ) -> Category:
        """Partially update a category. Visibility changes are mirrored to presence."""
        if name is not None:
            name = _require_text(name, "Category name")
        category = self.get_category(vendor_id, category_id)
        vendor = category.vendor

        if name is not None:
            names = [
                name if c.id == category_id else c.name
                for c in self.catalog.list_categories(vendor_id)
            ]
            self._check_category_name(vendor, names, name)

        renamed = name is not None and name != category.name
        if name is not None:
            category.name = name
        if visible is not None:
            category.visibility = visible
        if photo_url is not None:
            category.photo_url = photo_url
        self.db.commit()
        self.db.refresh(category)

        if visible is not None:
            self.presence.set_category_visibility(vendor_id, category_id, visible)
        if renamed:
            self.sync_vendor_type(vendor)
        self.presence.publish_catalog_event(
            vendor_id, CatalogEventType.CATEGORY_UPDATED, category_id
        )
        return category

    def delete_category(self, vendor_id: int, category_id: int) -> list[int]:
        """Delete a category and every food item referenced solely through it.

        The category is marked deletion-in-progress first. Each item is removed
        independently; if any fail, ``PartialFailureError`` reports them and the
        marker stays so a retry resumes with the remaining items.

        Returns the ids of the food items removed from the category.
        """
        category = self.catalog.get_category(vendor_id, category_id, include_deleting=True)
        if category is None:
            raise NotFoundError("Category not found")
        vendor = category.vendor

        if not category.is_deleting:
            category.mark_for_deletion()
            self.db.commit()
            self.presence.publish_catalog_event(
                vendor_id, CatalogEventType.CATEGORY_UPDATED, category_id
            )

        food_item_ids = [
            food_item_id
            for (food_item_id,) in self.db.query(CategoryItem.food_item_id)
            .filter(CategoryItem.category_id == category_id)
            .order_by(CategoryItem.id)
            .all()
        ]

        deleted: list[int] = []
        failed: list[int] = []
        for food_item_id in food_item_ids:
            try:
                self._remove_from_category(category, food_item_id)
                deleted.append(food_item_id)
            except (SQLAlchemyError, UpstreamUnavailable) as e:
                self.db.rollback()
                logger.error(
                    f"Failed to delete food item {food_item_id} of category {category_id}: {e}"
                )
                failed.append(food_item_id)

        if failed:
            raise PartialFailureError(
                f"Deleted {len(deleted)} of {len(food_item_ids)} items; retry to resume",
                failed=failed,
                succeeded=deleted,
            )

        self.db.delete(category)
        self.db.commit()
        logger.info(f"Vendor {vendor_id} deleted category {category_id} ({len(deleted)} items)")

        self.presence.clear_category(vendor_id, category_id)
        self.sync_vendor_type(vendor)
        self.presence.publish_catalog_event(
            vendor_id, CatalogEventType.CATEGORY_DELETED, category_id
        )
        return deleted

    def _remove_from_category(self, category: Category, food_item_id: int) -> None:
        """Drop one placement; delete the food item when nothing else references it."""
        shared = (
            self.db.query(CategoryItem)
            .filter(
                CategoryItem.food_item_id == food_item_id,
                CategoryItem.category_id != category.id,
            )
            .count()
        )
        if shared:
            self.db.query(CategoryItem).filter(
                CategoryItem.food_item_id == food_item_id,
                CategoryItem.category_id == category.id,
            ).delete(synchronize_session=False)
            self.db.commit()
            return

        food_item = self.db.query(FoodItem).filter(FoodItem.id == food_item_id).first()
        if food_item is not None:
            self.images.delete_photos(food_item.photo_urls)
        self._delete_food_item_rows(food_item_id)
        self.db.commit()

    def _delete_food_item_rows(self, food_item_id: int) -> None:
        self.db.query(CategoryItem).filter(CategoryItem.food_item_id == food_item_id).delete(
            synchronize_session=False
        )
        self.db.query(FoodItem).filter(FoodItem.id == food_item_id).delete(
            synchronize_session=False
        )

    def _check_category_name(self, vendor: Vendor, names: list[str], name: str) -> None:
        """Reject a reserved name for a vendor that is, or would end up, a cafe.

        ``names`` is the vendor's full category name list after the mutation.
        """
        if not is_reserved_category_name(name):
            return
        if vendor.type == VendorType.CAFE or classify_vendor(names, vendor.type) == VendorType.CAFE:
            raise ValidationError(
                'Category name cannot be "stall", "stalls", or contain words with similar meaning'
            )

    def sync_vendor_type(self, vendor: Vendor) -> VendorType | None:
        """Reclassify a vendor from its categories and mirror the result to presence."""
        names = [category.name for category in self.catalog.list_categories(vendor.id)]
        vendor_type = classify_vendor(names, vendor.type)
        if vendor_type is None:
            return None

        if vendor_type != vendor.type:
            logger.info(f"Vendor {vendor.id} reclassified {vendor.vendor_type} -> {vendor_type}")
            vendor.vendor_type = vendor_type.value
            self.db.commit()
        self.presence.set_vendor_type(vendor.id, vendor_type)
        return vendor_type

    # Food items

    def add_food_item(
        self,
        vendor_id: int,
        category_id: int,
        name: str | None,
        price: float | None,
        photo_urls: list[str] | None,
        description: str | None = None,
    ) -> FoodItem:
        """Create a canonical food item, then place it in the category.

        The two writes are separate commits; an item left without a placement is
        removed by the reconciliation sweep.
        """
        name = _require_text(name, "Name")
        price = _validate_price(price)
        photo_urls = _validate_photo_urls(photo_urls)
        self.get_category(vendor_id, category_id)

        food_item = FoodItem(
            seller_id=vendor_id,
            name=name,
            description=description or "",
            price=price,
            photo_urls=photo_urls,
            rating=0,
        )
        self.db.add(food_item)
        self.db.commit()
        self.db.refresh(food_item)

        self.db.add(CategoryItem(category_id=category_id, food_item_id=food_item.id))
        self.db.commit()
        logger.info(f"Vendor {vendor_id} added food item {food_item.id} to category {category_id}")

        self.presence.publish_catalog_event(
            vendor_id, CatalogEventType.ITEM_CREATED, category_id, {"food_item_id": food_item.id}
        )
        return food_item

    def update_food_item(
        self,
        vendor_id: int,
        category_id: int,
        food_item_id: int,
        name: str | None = None,
        description: str | None = None,
        price: float | None = None,
        photo_urls: list[str] | None = None,
    ) -> FoodItem:
        """Update canonical item content. Placement is untouched."""
        if name is not None:
            name = _require_text(name, "Name")
        if price is not None:
            price = _validate_price(price)
        if photo_urls is not None:
            photo_urls = _validate_photo_urls(photo_urls)

        food_item = self.get_food_item(vendor_id, category_id, food_item_id)
        if name is not None:
            food_item.name = name
        if description is not None:
            food_item.description = description
        if price is not None:
            food_item.price = price
        if photo_urls is not None:
            food_item.photo_urls = photo_urls
        self.db.commit()
        self.db.refresh(food_item)

        self.presence.publish_catalog_event(
            vendor_id, CatalogEventType.ITEM_UPDATED, category_id, {"food_item_id": food_item_id}
        )
        return food_item

    def delete_food_item(self, vendor_id: int, category_id: int, food_item_id: int) -> None:
        """Delete a food item and every placement pointing at it."""
        food_item = self.get_food_item(vendor_id, category_id, food_item_id)
        touched = [
            touched_id
            for (touched_id,) in self.db.query(CategoryItem.category_id)
            .filter(CategoryItem.food_item_id == food_item_id)
            .distinct()
            .all()
        ]

        self.images.delete_photos(food_item.photo_urls)
        self._delete_food_item_rows(food_item_id)
        self.db.commit()
        logger.info(f"Vendor {vendor_id} deleted food item {food_item_id}")

        for touched_id in touched:
            self.presence.publish_catalog_event(
                vendor_id, CatalogEventType.ITEM_DELETED, touched_id, {"food_item_id": food_item_id}
            )

    # Reconciliation

    def resume_pending_deletions(self) -> dict[str, list]:
        """Finish category deletions that were interrupted."""
        pending = (
            self.db.query(Category.vendor_id, Category.id)
            .filter(Category.deletion_started_at.is_not(None))
            .all()
        )
        completed: list[int] = []
        failed: list[int] = []
        for vendor_id, category_id in pending:
            try:
                self.delete_category(vendor_id, category_id)
                completed.append(category_id)
            except (PartialFailureError, UpstreamUnavailable) as e:
                logger.warning(f"Category {category_id} deletion still incomplete: {e}")
                failed.append(category_id)
        return {"completed": completed, "failed": failed}

    def delete_orphan_food_items(self, grace_minutes: int) -> list[int]:
        """Delete food items that never got (or lost) their placement."""
        cutoff = datetime.now(UTC) - timedelta(minutes=grace_minutes)
        orphans = (
            self.db.query(FoodItem)
            .outerjoin(CategoryItem, CategoryItem.food_item_id == FoodItem.id)
            .filter(CategoryItem.id.is_(None), FoodItem.created_at < cutoff)
            .all()
        )

        deleted: list[int] = []
        for food_item in orphans:
            food_item_id = food_item.id
            try:
                self.images.delete_photos(food_item.photo_urls)
                self._delete_food_item_rows(food_item_id)
                self.db.commit()
                deleted.append(food_item_id)
            except (SQLAlchemyError, UpstreamUnavailable) as e:
                self.db.rollback()
                logger.error(f"Failed to delete orphan food item {food_item_id}: {e}")
        if deleted:
            logger.info(f"Deleted {len(deleted)} orphan food items")
        return deleted

    def prune_category_status(self) -> list[tuple[str, str]]:
        """Remove categoryStatus entries whose category no longer exists."""
        snapshot = self.presence.snapshot()
        pruned: list[tuple[str, str]] = []
        for raw_vendor_id, flags in snapshot.category_status.items():
            for raw_category_id in flags:
                try:
                    vendor_id, category_id = int(raw_vendor_id), int(raw_category_id)
                except ValueError:
                    exists = False
                else:
                    exists = (
                        self.catalog.get_category(vendor_id, category_id, include_deleting=True)
                        is not None
                    )
                if not exists:
                    self.presence.remove(f"categoryStatus/{raw_vendor_id}/{raw_category_id}")
                    pruned.append((raw_vendor_id, raw_category_id))
        if pruned:
            logger.info(f"Pruned {len(pruned)} stale categoryStatus entries")
        return pruned
