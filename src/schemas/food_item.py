"""Food item schemas."""

from datetime import datetime

from pydantic import Field

from src.schemas.base import CamelModel


class FoodItemCreate(CamelModel):
    """Create a new food item in a category."""

    name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=2000)
    price: float | None = None
    photo_urls: list[str] | None = Field(None, alias="photoURLs")


class FoodItemUpdate(CamelModel):
    """Update a food item."""

    name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=2000)
    price: float | None = None
    photo_urls: list[str] | None = Field(None, alias="photoURLs")


class FoodItemResponse(CamelModel):
    """Food item response."""

    id: int
    seller_id: int
    name: str
    description: str
    price: float
    photo_urls: list[str] = Field(alias="photoURLs")
    rating: float
    created_at: datetime
