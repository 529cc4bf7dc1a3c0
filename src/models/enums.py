"""Enums for model fields."""

from enum import Enum


class VendorType(str, Enum):
    """Durable vendor classification."""

    STALL = "stall"
    CAFE = "cafe"

    @property
    def presence_value(self) -> str:
        """Value mirrored into the presence store's vendorType map."""
        return "stall" if self == VendorType.STALL else "shop"

    @classmethod
    def from_presence(cls, value: str | None) -> "VendorType | None":
        """Map a presence vendorType value ("stall" | "shop") back to a vendor type."""
        if value == "stall":
            return cls.STALL
        if value in ("shop", "cafe"):
            return cls.CAFE
        return None
