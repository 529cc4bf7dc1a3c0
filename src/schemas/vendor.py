"""Vendor schemas."""

from datetime import datetime

from pydantic import Field

from src.models.enums import VendorType
from src.schemas.base import CamelModel


class VendorProfileUpdate(CamelModel):
    """Create or update a vendor profile."""

    name: str | None = Field(None, max_length=255)
    description: str | None = Field(None, max_length=2000)
    landmark: str | None = Field(None, max_length=255)
    photo_urls: list[str] | None = Field(None, alias="photoURLs")
    vendor_type: VendorType | None = None


class VendorStatusUpdate(CamelModel):
    """Go live or offline."""

    live: bool


class VendorResponse(CamelModel):
    """Vendor profile with its live presence state."""

    id: int
    name: str
    description: str | None
    landmark: str | None
    photo_urls: list[str] | None = Field(None, alias="photoURLs")
    vendor_type: str | None
    live: bool = False
    presence_type: str | None = None
    created_at: datetime
