"""
Product model: catalog reference data consumed by the ledger.

The catalog itself is maintained elsewhere; the ledger only reads the
pricing fields it needs for return valuation and the name it snapshots
into return items.
"""

from sqlalchemy import Boolean, CheckConstraint, Column, Numeric, String
from sqlalchemy.orm import relationship

from .base import BaseModel


class Product(BaseModel):
    """
    Product sold at the cafe.

    Attributes:
        name: Display name (snapshotted into return items)
        original_price: What the cafe pays the supplier per unit
        sale_price: What customers pay per unit
        default_return_percentage: Share of original_price credited on return;
            NULL falls back to the system default (20%)
        is_weight_based: True when quantities are weights (fractional units)
        is_active: False once the product is withdrawn from sale
    """

    __tablename__ = "products"

    name = Column(String(200), nullable=False, index=True)
    original_price = Column(Numeric(10, 2), nullable=False, default=0)
    sale_price = Column(Numeric(10, 2), nullable=False, default=0)
    default_return_percentage = Column(Numeric(5, 2), nullable=True)
    is_weight_based = Column(Boolean, nullable=False, default=False)
    is_active = Column(Boolean, nullable=False, default=True)

    batches = relationship(
        "InventoryBatch",
        back_populates="product",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    __table_args__ = (
        CheckConstraint("original_price >= 0", name="ck_product_original_price_non_negative"),
        CheckConstraint("sale_price >= 0", name="ck_product_sale_price_non_negative"),
        CheckConstraint(
            "default_return_percentage IS NULL OR "
            "(default_return_percentage >= 0 AND default_return_percentage <= 100)",
            name="ck_product_return_percentage_range",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"Product(id={self.id}, name='{self.name}', "
            f"original_price={self.original_price})"
        )
