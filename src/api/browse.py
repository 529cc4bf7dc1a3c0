"""Customer browse and search API endpoints."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_browse_resolver, get_search_service
from src.exceptions import UpstreamUnavailable
from src.schemas.browse import BrowseItem, BrowseResponse, SearchResponse
from src.services.browse import BrowseResolver, ViewSelector, VisibleItem
from src.services.catalog_repository import CatalogRepository
from src.services.presence import PresenceStore, get_presence_store
from src.services.search import SearchService

logger = logging.getLogger(__name__)
router = APIRouter(tags=["browse"])

UNAVAILABLE_MESSAGE = "The menu is temporarily unavailable. Please try again shortly."


def build_browse_items(catalog: CatalogRepository, visible: list[VisibleItem]) -> list[BrowseItem]:
    """Attach item content to visible placements. Items deleted meanwhile are dropped."""
    by_id = catalog.get_food_items([item.food_item_id for item in visible])
    items = []
    for item in visible:
        food_item = by_id.get(item.food_item_id)
        if food_item is None:
            continue
        items.append(
            BrowseItem(
                vendor_id=item.vendor_id,
                category_id=item.category_id,
                food_item_id=item.food_item_id,
                name=food_item.name,
                price=food_item.price,
                photo_url=(food_item.photo_urls or [None])[0],
                rating=food_item.rating,
            )
        )
    return items


@router.get("/browse", response_model=BrowseResponse)
def browse(
    resolver: Annotated[BrowseResolver, Depends(get_browse_resolver)],
    presence: Annotated[PresenceStore, Depends(get_presence_store)],
    view: str = Query(default="all"),
    vendor_type: str | None = Query(default=None, alias="vendorType"),
    vendor_id: int | None = Query(default=None, alias="vendorId"),
    category_id: int | None = Query(default=None, alias="categoryId"),
):
    """Get the currently visible food items for a view."""
    selector = ViewSelector.build(view, vendor_type, vendor_id, category_id)
    try:
        snapshot = presence.snapshot()
    except UpstreamUnavailable as e:
        logger.warning(f"Browse degraded: {e}")
        return BrowseResponse(items=[], message=UNAVAILABLE_MESSAGE)

    result = resolver.resolve(snapshot, selector)
    return BrowseResponse(items=build_browse_items(resolver.catalog, result.items))


@router.get("/search", response_model=SearchResponse)
def search(
    service: Annotated[SearchService, Depends(get_search_service)],
    q: str | None = Query(default=None),
):
    """Search food items of live vendors, best match first."""
    try:
        results = service.search(q)
    except UpstreamUnavailable as e:
        logger.warning(f"Search degraded: {e}")
        return SearchResponse(results=[], message=UNAVAILABLE_MESSAGE)
    return SearchResponse(results=results)
