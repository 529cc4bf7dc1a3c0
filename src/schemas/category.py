"""Category schemas."""

from datetime import datetime

from pydantic import Field

from src.schemas.base import CamelModel
from src.schemas.food_item import FoodItemResponse


class CategoryCreate(CamelModel):
    """Create a new category."""

    category_name: str | None = Field(None, max_length=255)
    visibility: bool | None = True
    photo_url: str | None = Field(None, max_length=1000, alias="photoURL")


class CategoryUpdate(CamelModel):
    """Update a category."""

    category_name: str | None = Field(None, max_length=255)
    visibility: bool | None = None
    photo_url: str | None = Field(None, max_length=1000, alias="photoURL")


class CategoryResponse(CamelModel):
    """Category response."""

    id: int
    vendor_id: int
    category_name: str = Field(validation_alias="name")
    visibility: bool
    photo_url: str | None = Field(None, alias="photoURL")
    created_at: datetime


class CategoryCreated(CategoryResponse):
    """Category response on creation, with the vendor's resulting type."""

    vendor_type: str | None = None


class CategoryPage(CamelModel):
    """One page of a vendor's categories."""

    categories: list[CategoryResponse]
    last_doc: int | None
    has_more: bool


class CategoryItemsPage(CamelModel):
    """One page of a category's food items."""

    items: list[FoodItemResponse]
    last_doc: int | None
    has_more: bool
    category_name: str


class CategoryDeleted(CamelModel):
    """Result of a cascading category delete."""

    message: str
    deleted_items: list[int]
