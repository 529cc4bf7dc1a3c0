"""SQLAlchemy models."""

from src.models.category import Category
from src.models.category_item import CategoryItem
from src.models.food_item import FoodItem
from src.models.vendor import Vendor

__all__ = [
    "Vendor",
    "Category",
    "CategoryItem",
    "FoodItem",
]
