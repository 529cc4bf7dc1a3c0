"""FoodItem model."""

from sqlalchemy import JSON, Column, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class FoodItem(Base, TimestampMixin):
    """Canonical sellable item. Placement lives in CategoryItem."""

    __tablename__ = "food_items"

    id = Column(Integer, primary_key=True, index=True)
    seller_id = Column(Integer, ForeignKey("vendors.id"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=False, default="")
    price = Column(Float, nullable=False)
    photo_urls = Column(JSON, nullable=False)
    rating = Column(Float, nullable=False, default=0)

    # Relationships
    seller = relationship("Vendor", back_populates="food_items")
    placements = relationship("CategoryItem", back_populates="food_item")
