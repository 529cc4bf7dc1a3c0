"""Category API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query, status

from src.api.dependencies import get_catalog_service, require_seller
from src.config import get_settings
from src.schemas.category import (
    CategoryCreate,
    CategoryCreated,
    CategoryDeleted,
    CategoryItemsPage,
    CategoryPage,
    CategoryResponse,
    CategoryUpdate,
)
from src.schemas.food_item import FoodItemCreate, FoodItemResponse
from src.services.catalog_service import CatalogService

router = APIRouter(prefix="/categories", tags=["categories"])
settings = get_settings()


@router.get("/{vendor_id}", response_model=CategoryPage)
def get_categories(
    vendor_id: int,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
    limit: int = Query(default=settings.default_page_size, ge=1, le=100),
    last_doc: int | None = Query(default=None, alias="lastDoc"),
):
    """Get a page of a vendor's categories, newest first."""
    page = service.list_categories_page(vendor_id, limit, last_doc)
    return CategoryPage(
        categories=[CategoryResponse.model_validate(c) for c in page["categories"]],
        last_doc=page["last_doc"],
        has_more=page["has_more"],
    )


@router.get("/{vendor_id}/{category_id}", response_model=CategoryResponse)
def get_category(
    vendor_id: int,
    category_id: int,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
):
    """Get a single category."""
    return CategoryResponse.model_validate(service.get_category(vendor_id, category_id))


@router.post(
    "/{vendor_id}/add",
    response_model=CategoryCreated,
    status_code=status.HTTP_201_CREATED,
)
def create_category(
    vendor_id: Annotated[int, Depends(require_seller)],
    category_data: CategoryCreate,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
):
    """Create a new category for the vendor."""
    category = service.add_category(
        vendor_id,
        category_data.category_name,
        visible=category_data.visibility,
        photo_url=category_data.photo_url,
    )
    response = CategoryCreated.model_validate(category)
    response.vendor_type = category.vendor.vendor_type
    return response


@router.put("/{vendor_id}/update/{category_id}", response_model=CategoryResponse)
def update_category(
    vendor_id: Annotated[int, Depends(require_seller)],
    category_id: int,
    category_data: CategoryUpdate,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
):
    """Update a category's name, visibility or photo."""
    category = service.update_category(
        vendor_id,
        category_id,
        name=category_data.category_name,
        visible=category_data.visibility,
        photo_url=category_data.photo_url,
    )
    return CategoryResponse.model_validate(category)


@router.delete("/{vendor_id}/delete/{category_id}", response_model=CategoryDeleted)
def delete_category(
    vendor_id: Annotated[int, Depends(require_seller)],
    category_id: int,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
):
    """Delete a category along with all food items in it."""
    deleted = service.delete_category(vendor_id, category_id)
    return CategoryDeleted(
        message="Category and its food items deleted successfully",
        deleted_items=deleted,
    )


@router.get("/{vendor_id}/{category_id}/items", response_model=CategoryItemsPage)
def get_category_items(
    vendor_id: int,
    category_id: int,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
    limit: int = Query(default=settings.default_page_size, ge=1, le=100),
    last_doc_id: int | None = Query(default=None, alias="lastDocId"),
):
    """Get a page of food items in a category."""
    page = service.list_category_items_page(vendor_id, category_id, limit, last_doc_id)
    return CategoryItemsPage(
        items=[FoodItemResponse.model_validate(item) for item in page["items"]],
        last_doc=page["last_doc"],
        has_more=page["has_more"],
        category_name=page["category_name"],
    )


@router.post(
    "/{vendor_id}/items/{category_id}/add",
    response_model=FoodItemResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_food_item(
    vendor_id: Annotated[int, Depends(require_seller)],
    category_id: int,
    item_data: FoodItemCreate,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
):
    """Add a food item to a category."""
    food_item = service.add_food_item(
        vendor_id,
        category_id,
        name=item_data.name,
        price=item_data.price,
        photo_urls=item_data.photo_urls,
        description=item_data.description,
    )
    return FoodItemResponse.model_validate(food_item)
