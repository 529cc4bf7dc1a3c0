"""Vendor profile and live-status operations."""

import logging

from sqlalchemy.orm import Session

from src.exceptions import NotFoundError, ValidationError
from src.models.enums import VendorType
from src.models.vendor import Vendor
from src.services.catalog_repository import CatalogRepository
from src.services.presence import PresenceStore

logger = logging.getLogger(__name__)


class VendorService:
    """Service for vendor accounts."""

    def __init__(self, db: Session, presence: PresenceStore):
        self.db = db
        self.presence = presence
        self.catalog = CatalogRepository(db)

    def get_vendor(self, vendor_id: int) -> Vendor:
        vendor = self.catalog.get_vendor(vendor_id)
        if vendor is None:
            raise NotFoundError("Vendor not found")
        return vendor

    def upsert_profile(
        self,
        vendor_id: int,
        name: str | None = None,
        description: str | None = None,
        landmark: str | None = None,
        photo_urls: list[str] | None = None,
        vendor_type: VendorType | None = None,
    ) -> Vendor:
        """Create the vendor on signup or update its profile."""
        vendor = self.catalog.get_vendor(vendor_id)
        if vendor is None:
            if name is None or not name.strip():
                raise ValidationError("Vendor name is required")
            vendor = Vendor(id=vendor_id, name=name.strip())
            self.db.add(vendor)
            logger.info(f"Created vendor {vendor_id}")
        elif name is not None:
            if not name.strip():
                raise ValidationError("Vendor name cannot be empty")
            vendor.name = name.strip()

        if vendor_type is not None and vendor_type != vendor.type:
            if vendor.id is not None and self.catalog.list_categories(vendor.id):
                raise ValidationError(
                    "Vendor type follows the categories once the menu has categories"
                )
            vendor.vendor_type = vendor_type.value

        if description is not None:
            vendor.description = description
        if landmark is not None:
            vendor.landmark = landmark
        if photo_urls is not None:
            vendor.photo_urls = photo_urls

        self.db.commit()
        self.db.refresh(vendor)

        if vendor.type is not None:
            self.presence.set_vendor_type(vendor.id, vendor.type)
        return vendor

    def set_live(self, vendor_id: int, live: bool) -> None:
        """Go live or offline."""
        self.get_vendor(vendor_id)
        self.presence.set_vendor_live(vendor_id, live)
        logger.info(f"Vendor {vendor_id} is now {'live' if live else 'offline'}")

    def presence_state(self, vendor_id: int) -> dict:
        return {
            "live": self.presence.is_vendor_live(vendor_id),
            "presence_type": self.presence.get_vendor_type(vendor_id),
        }
