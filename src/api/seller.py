"""Seller food item API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.dependencies import get_catalog_service, require_seller
from src.schemas.food_item import FoodItemResponse, FoodItemUpdate
from src.services.catalog_service import CatalogService

router = APIRouter(prefix="/seller", tags=["seller"])


@router.get("/{vendor_id}/items/{category_id}/{food_item_id}", response_model=FoodItemResponse)
def get_food_item(
    vendor_id: int,
    category_id: int,
    food_item_id: int,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
):
    """Get a food item from the seller's menu."""
    return FoodItemResponse.model_validate(
        service.get_food_item(vendor_id, category_id, food_item_id)
    )


@router.put("/{vendor_id}/update/{category_id}/{food_item_id}", response_model=FoodItemResponse)
def update_food_item(
    vendor_id: Annotated[int, Depends(require_seller)],
    category_id: int,
    food_item_id: int,
    item_data: FoodItemUpdate,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
):
    """Update a food item's content. Its placement is unchanged."""
    food_item = service.update_food_item(
        vendor_id,
        category_id,
        food_item_id,
        name=item_data.name,
        description=item_data.description,
        price=item_data.price,
        photo_urls=item_data.photo_urls,
    )
    return FoodItemResponse.model_validate(food_item)


@router.delete("/{vendor_id}/item/{category_id}/{food_item_id}")
def delete_food_item(
    vendor_id: Annotated[int, Depends(require_seller)],
    category_id: int,
    food_item_id: int,
    service: Annotated[CatalogService, Depends(get_catalog_service)],
):
    """Delete a food item and every reference to it."""
    service.delete_food_item(vendor_id, category_id, food_item_id)
    return {"message": "Food item and related references deleted successfully"}
