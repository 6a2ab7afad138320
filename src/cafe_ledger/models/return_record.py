"""
Return models: a committed return and its per-batch line items.

A ReturnRecord owns its ReturnItems. Deleting a ReturnRecord deletes every
one of its items (ORM delete-orphan cascade backed by ON DELETE CASCADE).

Items denormalize product identity and prices so the history stays readable
after the product is renamed, repriced or removed. Aggregates on the record
are fixed at commit time and never recomputed.
"""

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import relationship

from .base import BaseModel


class ReturnRecord(BaseModel):
    """
    One committed returns-processing operation.

    Attributes:
        return_date: Calendar date of the return
        processed_by: Opaque reference to the acting user
        processed_at: When the return was committed
        total_batches: Number of batches returned
        total_quantity: Sum of returned quantities
        total_value: Sum of item total_return_value
        notification_sent: True once the owner summary was delivered
    """

    __tablename__ = "returns"

    return_date = Column(Date, nullable=False, index=True)
    processed_by = Column(String(100), nullable=False, index=True)
    processed_at = Column(DateTime, nullable=False, index=True)

    total_batches = Column(Integer, nullable=False, default=0)
    total_quantity = Column(Numeric(12, 3), nullable=False, default=0)
    total_value = Column(Numeric(12, 2), nullable=False, default=0)

    notification_sent = Column(Boolean, nullable=False, default=False)

    items = relationship(
        "ReturnItem",
        back_populates="return_record",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="ReturnItem.id",
    )

    __table_args__ = (
        CheckConstraint("total_batches >= 0", name="ck_return_total_batches_non_negative"),
        CheckConstraint("total_quantity >= 0", name="ck_return_total_quantity_non_negative"),
        CheckConstraint("total_value >= 0", name="ck_return_total_value_non_negative"),
    )

    def __repr__(self) -> str:
        return (
            f"ReturnRecord(id={self.id}, return_date={self.return_date}, "
            f"total_batches={self.total_batches}, total_value={self.total_value})"
        )


class ReturnItem(BaseModel):
    """
    One returned batch's contribution to a ReturnRecord.

    Immutable once written. The Undo Engine reads quantity and age_at_return
    to recreate a batch with the same apparent age.
    """

    __tablename__ = "return_items"

    return_id = Column(
        Integer, ForeignKey("returns.id", ondelete="CASCADE"), nullable=False
    )
    # Kept nullable so history survives product deletion
    product_id = Column(
        Integer, ForeignKey("products.id", ondelete="SET NULL"), nullable=True, index=True
    )

    product_name = Column(String(200), nullable=False)
    quantity = Column(Numeric(10, 3), nullable=False)
    age_at_return = Column(Integer, nullable=False)
    date_batch_added = Column(Date, nullable=True)

    original_price = Column(Numeric(10, 2), nullable=False)
    sale_price = Column(Numeric(10, 2), nullable=False)
    return_percentage = Column(Numeric(5, 2), nullable=False)
    return_value_per_unit = Column(Numeric(12, 2), nullable=False)
    total_return_value = Column(Numeric(12, 2), nullable=False)

    return_record = relationship("ReturnRecord", back_populates="items")

    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_return_item_quantity_positive"),
        CheckConstraint("age_at_return >= 0", name="ck_return_item_age_non_negative"),
        CheckConstraint(
            "return_percentage >= 0 AND return_percentage <= 100",
            name="ck_return_item_percentage_range",
        ),
        Index("idx_return_items_return", "return_id"),
    )

    def __repr__(self) -> str:
        return (
            f"ReturnItem(id={self.id}, return_id={self.return_id}, "
            f"product_name='{self.product_name}', quantity={self.quantity})"
        )
