import uuid
from datetime import datetime, timezone

from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, UniqueConstraint, CheckConstraint
from sqlalchemy.orm import relationship
from database import Base


# Represents a single cart line (product + quantity). The service keeps one shared cart.
class CartItem(Base):
    __tablename__ = "cart_items" # Table name

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    product_id = Column(
        String(36), ForeignKey("products.id", ondelete="CASCADE"), index=True, nullable=False
    ) # Foreign key to product
    quantity = Column(Integer, CheckConstraint("quantity > 0"), nullable=False) # Product quantity
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)) # Creation timestamp

    product = relationship("Product", lazy="joined") # Join-fetched with the line

    __table_args__ = (
        # At most one line per product; repeat adds merge into it
        UniqueConstraint("product_id", name="uq_cartitem_product"),
    )
