"""Pydantic schemas for API requests and responses."""

from src.schemas.browse import BrowseItem, BrowseResponse, SearchResponse
from src.schemas.category import (
    CategoryCreate,
    CategoryCreated,
    CategoryDeleted,
    CategoryItemsPage,
    CategoryPage,
    CategoryResponse,
    CategoryUpdate,
)
from src.schemas.food_item import FoodItemCreate, FoodItemResponse, FoodItemUpdate
from src.schemas.vendor import VendorProfileUpdate, VendorResponse, VendorStatusUpdate

__all__ = [
    "VendorProfileUpdate",
    "VendorStatusUpdate",
    "VendorResponse",
    "CategoryCreate",
    "CategoryUpdate",
    "CategoryResponse",
    "CategoryCreated",
    "CategoryPage",
    "CategoryItemsPage",
    "CategoryDeleted",
    "FoodItemCreate",
    "FoodItemUpdate",
    "FoodItemResponse",
    "BrowseItem",
    "BrowseResponse",
    "SearchResponse",
]
