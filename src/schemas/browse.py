"""Browse and search schemas."""

from src.schemas.base import CamelModel


class BrowseItem(CamelModel):
    """A visible food item with its placement."""

    vendor_id: int
    category_id: int
    food_item_id: int
    name: str
    price: float
    photo_url: str | None
    rating: float


class BrowseResponse(CamelModel):
    """Visible items for a browse view. Empty with a message when degraded."""

    items: list[BrowseItem]
    message: str | None = None


class SearchResponse(CamelModel):
    """Matching food item ids, best match first."""

    results: list[int]
    message: str | None = None
