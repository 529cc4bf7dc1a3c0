"""FastAPI dependencies for authentication, stores and services."""

from typing import Annotated

from fastapi import Depends, HTTPException, Path, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from src.database import get_db
from src.services.auth import decode_access_token
from src.services.browse import BrowseResolver
from src.services.catalog_repository import CatalogRepository
from src.services.catalog_service import CatalogService
from src.services.image_storage import ImageStorageClient, get_image_storage
from src.services.presence import PresenceStore, get_presence_store
from src.services.search import SearchService
from src.services.vendor_service import VendorService

security = HTTPBearer()


def get_current_vendor_id(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> int:
    """Get the authenticated vendor id from the identity provider's token."""
    payload = decode_access_token(credentials.credentials)

    if payload is None or payload.get("sub") is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return int(payload["sub"])
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"WWW-Authenticate": "Bearer"},
        ) from None


def require_seller(
    vendor_id: Annotated[int, Path()],
    current_vendor_id: Annotated[int, Depends(get_current_vendor_id)],
) -> int:
    """Only the vendor itself may change its catalog."""
    if vendor_id != current_vendor_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Not allowed to modify another vendor's menu",
        )
    return vendor_id


def get_catalog_service(
    db: Annotated[Session, Depends(get_db)],
    presence: Annotated[PresenceStore, Depends(get_presence_store)],
    images: Annotated[ImageStorageClient, Depends(get_image_storage)],
) -> CatalogService:
    """Get catalog service with dependencies."""
    return CatalogService(db, presence, images)


def get_vendor_service(
    db: Annotated[Session, Depends(get_db)],
    presence: Annotated[PresenceStore, Depends(get_presence_store)],
) -> VendorService:
    """Get vendor service with dependencies."""
    return VendorService(db, presence)


def get_browse_resolver(
    db: Annotated[Session, Depends(get_db)],
) -> BrowseResolver:
    """Get browse resolver over the durable catalog."""
    return BrowseResolver(CatalogRepository(db))


def get_search_service(
    db: Annotated[Session, Depends(get_db)],
    presence: Annotated[PresenceStore, Depends(get_presence_store)],
) -> SearchService:
    """Get search service with dependencies."""
    return SearchService(CatalogRepository(db), presence)
