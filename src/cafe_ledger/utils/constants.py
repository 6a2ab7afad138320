"""
Constants for the Cafe Ledger inventory core.

This module defines system-wide constants including:
- Application metadata
- Batch age thresholds
- Return valuation defaults
- Decimal precision and validation limits
"""

from decimal import Decimal
from typing import List

# ============================================================================
# Application Metadata
# ============================================================================

APP_NAME = "Cafe Ledger"
APP_VERSION = "0.1.0"
DATABASE_VERSION = "1.0"

# ============================================================================
# Batch Age Categories
# ============================================================================

# Inclusive upper bounds, in whole days since date_added
FRESH_MAX_AGE_DAYS = 2
MEDIUM_MAX_AGE_DAYS = 7

# ============================================================================
# Returns
# ============================================================================

# Fallback when neither an override nor a product default is present
DEFAULT_RETURN_PERCENTAGE = Decimal("20")

MIN_RETURN_PERCENTAGE = Decimal("0")
MAX_RETURN_PERCENTAGE = Decimal("100")

# Offered by the returns screen; the engine accepts any value in range
RETURN_PERCENTAGE_PRESETS: List[Decimal] = [Decimal("20"), Decimal("100")]

# ============================================================================
# Validation Constants
# ============================================================================

MAX_NAME_LENGTH = 200
MAX_ACTOR_LENGTH = 100

MAX_QUANTITY = Decimal("9999999.999")

# Decimal precision
CURRENCY_DECIMAL_PLACES = 2
QUANTITY_DECIMAL_PLACES = 3

CURRENCY_QUANTUM = Decimal("0.01")
QUANTITY_QUANTUM = Decimal("0.001")

# ============================================================================
# Database Constants
# ============================================================================

DATABASE_FILENAME = "cafe_ledger.db"

TABLE_PRODUCT = "products"
TABLE_INVENTORY_BATCH = "inventory_batches"
TABLE_RETURN = "returns"
TABLE_RETURN_ITEM = "return_items"

# Seconds to wait for a product lock before giving up
DEFAULT_LOCK_TIMEOUT = 10.0

# ============================================================================
# Date/Time Formats
# ============================================================================

DATE_FORMAT = "%Y-%m-%d"
DATETIME_FORMAT = "%Y-%m-%d %H:%M:%S"

# ============================================================================
# Error Messages
# ============================================================================

ERROR_REQUIRED_FIELD = "This field is required"
ERROR_INVALID_NUMBER = "Please enter a valid number"
ERROR_INVALID_POSITIVE = "Value must be greater than zero"
ERROR_INVALID_NON_NEGATIVE = "Value must be zero or greater"
ERROR_QUANTITY_TOO_LARGE = f"Value must be {MAX_QUANTITY} or less"
ERROR_INVALID_PERCENTAGE = (
    f"Percentage must be between {MIN_RETURN_PERCENTAGE} and {MAX_RETURN_PERCENTAGE}"
)
