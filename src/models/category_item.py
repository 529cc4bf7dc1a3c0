"""CategoryItem model."""

from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint
from sqlalchemy.orm import relationship

from src.database import Base
from src.models.mixins import TimestampMixin


class CategoryItem(Base, TimestampMixin):
    """Placement of a canonical food item inside a category."""

    __tablename__ = "category_items"
    __table_args__ = (
        UniqueConstraint("category_id", "food_item_id", name="uq_category_items_placement"),
    )

    id = Column(Integer, primary_key=True, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), nullable=False, index=True)
    food_item_id = Column(Integer, ForeignKey("food_items.id"), nullable=False, index=True)

    # Relationships
    category = relationship("Category", back_populates="category_items")
    food_item = relationship("FoodItem", back_populates="placements")
