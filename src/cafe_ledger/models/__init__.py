"""
Database models package.

This package contains all SQLAlchemy ORM models for the ledger.
"""

from .base import Base, BaseModel
from .enums import AgeCategory, AuditEventName
from .product import Product
from .inventory_batch import InventoryBatch
from .return_record import ReturnRecord, ReturnItem

__all__ = [
    "Base",
    "BaseModel",
    "AgeCategory",
    "AuditEventName",
    "Product",
    "InventoryBatch",
    "ReturnRecord",
    "ReturnItem",
]
