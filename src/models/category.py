"""Category model."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import PendingDeletionMixin, TimestampMixin


class Category(Base, TimestampMixin, PendingDeletionMixin):
    """Named grouping of food items under a vendor."""

    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    vendor_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    # Mirrored into categoryStatus/{vendor}/{category} in the presence store
    visibility = Column(Boolean, nullable=False, default=True)
    photo_url = Column(String(1000), nullable=True)

    # Relationships
    vendor = relationship("Vendor", back_populates="categories")
    category_items = relationship("CategoryItem", back_populates="category")
