"""Vendor model."""

from sqlalchemy import JSON, Column, Integer, String, Text
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.enums import VendorType
from src.models.mixins import TimestampMixin


class Vendor(Base, TimestampMixin):
    """A food seller account operating as a stall or a cafe."""

    __tablename__ = "vendors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    landmark = Column(String(255), nullable=True)
    photo_urls = Column(JSON, nullable=True)
    # "stall" | "cafe"; unset until the first category classifies the vendor
    vendor_type = Column(String(20), nullable=True)

    # Relationships
    categories = relationship("Category", back_populates="vendor")
    food_items = relationship("FoodItem", back_populates="seller")

    @property
    def type(self) -> VendorType | None:
        """Vendor type as an enum, or None while unclassified."""
        return VendorType(self.vendor_type) if self.vendor_type else None
