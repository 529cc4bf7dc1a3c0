"""Vendor profile and presence API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from src.api.dependencies import get_vendor_service, require_seller
from src.models.vendor import Vendor
from src.schemas.vendor import VendorProfileUpdate, VendorResponse, VendorStatusUpdate
from src.services.vendor_service import VendorService

router = APIRouter(prefix="/vendors", tags=["vendors"])


def build_vendor_response(vendor: Vendor, service: VendorService) -> VendorResponse:
    """Combine the durable profile with the vendor's presence flags."""
    return VendorResponse.model_validate(
        {
            "id": vendor.id,
            "name": vendor.name,
            "description": vendor.description,
            "landmark": vendor.landmark,
            "photo_urls": vendor.photo_urls,
            "vendor_type": vendor.vendor_type,
            "created_at": vendor.created_at,
            **service.presence_state(vendor.id),
        }
    )


@router.get("/{vendor_id}", response_model=VendorResponse)
def get_vendor(
    vendor_id: int,
    service: Annotated[VendorService, Depends(get_vendor_service)],
):
    """Get a vendor's profile and live status."""
    return build_vendor_response(service.get_vendor(vendor_id), service)


@router.put("/{vendor_id}", response_model=VendorResponse)
def upsert_vendor(
    vendor_id: Annotated[int, Depends(require_seller)],
    profile: VendorProfileUpdate,
    service: Annotated[VendorService, Depends(get_vendor_service)],
):
    """Create the vendor on signup, or update its profile."""
    vendor = service.upsert_profile(
        vendor_id,
        name=profile.name,
        description=profile.description,
        landmark=profile.landmark,
        photo_urls=profile.photo_urls,
        vendor_type=profile.vendor_type,
    )
    return build_vendor_response(vendor, service)


@router.put("/{vendor_id}/status", response_model=VendorResponse)
def set_vendor_status(
    vendor_id: Annotated[int, Depends(require_seller)],
    status_data: VendorStatusUpdate,
    service: Annotated[VendorService, Depends(get_vendor_service)],
):
    """Go live or offline."""
    service.set_live(vendor_id, status_data.live)
    return build_vendor_response(service.get_vendor(vendor_id), service)
