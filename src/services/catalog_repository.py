"""Read access to the durable catalog (vendor -> category -> item)."""

from sqlalchemy.orm import Session

from src.models.category import Category
from src.models.category_item import CategoryItem
from src.models.food_item import FoodItem
from src.models.vendor import Vendor


class CatalogRepository:
    """Durable catalog queries shared by the resolvers and the catalog service.

    Categories with a pending cascading delete are treated as absent.
    """

    def __init__(self, db: Session):
        self.db = db

    def get_vendor(self, vendor_id: int) -> Vendor | None:
        return self.db.query(Vendor).filter(Vendor.id == vendor_id).first()

    def list_categories(self, vendor_id: int) -> list[Category]:
        return (
            self.db.query(Category)
            .filter(Category.vendor_id == vendor_id, Category.deletion_started_at.is_(None))
            .order_by(Category.created_at, Category.id)
            .all()
        )

    def get_category(
        self, vendor_id: int, category_id: int, include_deleting: bool = False
    ) -> Category | None:
        query = self.db.query(Category).filter(
            Category.id == category_id, Category.vendor_id == vendor_id
        )
        if not include_deleting:
            query = query.filter(Category.deletion_started_at.is_(None))
        return query.first()

    def list_food_items(self, category_id: int) -> list[FoodItem]:
        """Resolve a category's placements to the food items that still exist."""
        return (
            self.db.query(FoodItem)
            .join(CategoryItem, CategoryItem.food_item_id == FoodItem.id)
            .filter(CategoryItem.category_id == category_id)
            .order_by(CategoryItem.id)
            .all()
        )

    def list_food_item_ids(self, category_id: int) -> list[int]:
        rows = (
            self.db.query(FoodItem.id)
            .join(CategoryItem, CategoryItem.food_item_id == FoodItem.id)
            .filter(CategoryItem.category_id == category_id)
            .order_by(CategoryItem.id)
            .all()
        )
        return [food_item_id for (food_item_id,) in rows]

    def get_food_items(self, food_item_ids: list[int]) -> dict[int, FoodItem]:
        """Batch-load food items by id."""
        if not food_item_ids:
            return {}
        items = self.db.query(FoodItem).filter(FoodItem.id.in_(food_item_ids)).all()
        return {item.id: item for item in items}

    def recover(self) -> None:
        """Reset the session after a failed read so later reads can proceed."""
        self.db.rollback()
