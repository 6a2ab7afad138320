"""
InventoryBatch model for FIFO stock tracking.

Each record is a dated lot of one product. Batches are consumed in
date_added order (oldest first); a batch with quantity 0 is retired and
excluded from consumption and return candidate sets.
"""

from sqlalchemy import CheckConstraint, Column, Date, ForeignKey, Index, Integer, Numeric
from sqlalchemy.orm import relationship

from .base import BaseModel


class InventoryBatch(BaseModel):
    """
    A dated lot of stock for one product.

    Attributes:
        product_id: Foreign key to Product
        quantity: Units (or weight) remaining; never negative
        date_added: Calendar date the batch was checked in (FIFO key, immutable)

    Relationships:
        product: Many-to-One with Product
    """

    __tablename__ = "inventory_batches"

    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Fractional units allowed for weight-based products
    quantity = Column(Numeric(10, 3), nullable=False, default=0)

    date_added = Column(Date, nullable=False, index=True)

    product = relationship("Product", back_populates="batches")

    __table_args__ = (
        CheckConstraint("quantity >= 0", name="ck_batch_quantity_non_negative"),
        Index("idx_batches_product_date", "product_id", "date_added"),
    )

    @property
    def is_active(self) -> bool:
        """True while the batch still holds stock."""
        return self.quantity is not None and self.quantity > 0

    def __repr__(self) -> str:
        return (
            f"InventoryBatch(id={self.id}, "
            f"product_id={self.product_id}, "
            f"quantity={self.quantity}, "
            f"date_added={self.date_added})"
        )
