"""Product reference data access.

The catalog is owned elsewhere; the ledger reads products and can bulk
import their reference fields (id, name, prices, default return percentage,
weight flag) from the catalog's export.
"""

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models import Product
from .database import session_scope
from .exceptions import (
    ProductNotFound,
    ServiceError,
    TransactionFailure,
    ValidationError as ServiceValidationError,
)
from .logging_utils import get_service_logger, log_operation
from ..utils.validators import (
    to_decimal,
    validate_non_negative_quantity,
    validate_required_string,
    validate_return_percentage,
)

logger = get_service_logger(__name__)


def get_product(product_id: int, session: Optional[Session] = None) -> Product:
    """
    Retrieve a product by id.

    Raises:
        ProductNotFound: If product_id doesn't exist
    """

    def _do_get(sess: Session) -> Product:
        product = sess.query(Product).filter(Product.id == product_id).first()
        if product is None:
            raise ProductNotFound(product_id)
        return product

    if session is not None:
        return _do_get(session)
    with session_scope() as sess:
        return _do_get(sess)


def list_products(active_only: bool = True) -> List[Product]:
    """List products ordered by name."""
    with session_scope() as session:
        q = session.query(Product)
        if active_only:
            q = q.filter(Product.is_active.is_(True))
        return q.order_by(Product.name.asc()).all()


def _validate_record(record: Dict[str, Any]) -> List[str]:
    errors = []
    prefix = f"Product {record.get('id', '?')}"

    is_valid, msg = validate_required_string(record.get("name"), f"{prefix} name")
    if not is_valid:
        errors.append(msg)

    for field in ("original_price", "sale_price"):
        if field in record:
            is_valid, msg = validate_non_negative_quantity(record[field], f"{prefix} {field}")
            if not is_valid:
                errors.append(msg)

    if record.get("default_return_percentage") is not None:
        is_valid, msg = validate_return_percentage(
            record["default_return_percentage"], f"{prefix} default_return_percentage"
        )
        if not is_valid:
            errors.append(msg)

    return errors


def import_products(records: Iterable[Dict[str, Any]], session: Optional[Session] = None) -> Dict[str, int]:
    """
    Upsert product reference records.

    Records with an "id" update the matching product (or create it with that
    id); records without one are created. All records are validated before
    anything is written.

    Args:
        records: Dicts with name, original_price, sale_price,
            default_return_percentage, is_weight_based, is_active
        session: Optional database session for transaction composability

    Returns:
        {"created": n, "updated": m}

    Raises:
        ValidationError: If any record is invalid (nothing is written)
    """
    records = list(records)
    errors: List[str] = []
    for record in records:
        errors.extend(_validate_record(record))
    if errors:
        raise ServiceValidationError(errors)

    def _do_import(sess: Session) -> Dict[str, int]:
        created = updated = 0
        for record in records:
            product = None
            if record.get("id") is not None:
                product = sess.query(Product).filter(Product.id == int(record["id"])).first()
            if product is None:
                product = Product(id=record.get("id"))
                sess.add(product)
                created += 1
            else:
                updated += 1

            product.update_from_dict(
                {
                    "name": str(record["name"]).strip(),
                    "original_price": to_decimal(record.get("original_price", 0)),
                    "sale_price": to_decimal(record.get("sale_price", 0)),
                    "default_return_percentage": to_decimal(
                        record.get("default_return_percentage")
                    ),
                    "is_weight_based": bool(record.get("is_weight_based", False)),
                    "is_active": bool(record.get("is_active", True)),
                }
            )
        sess.flush()
        return {"created": created, "updated": updated}

    try:
        if session is not None:
            result = _do_import(session)
        else:
            with session_scope() as sess:
                result = _do_import(sess)
    except ServiceError:
        raise
    except SQLAlchemyError as e:
        raise TransactionFailure("Failed to import products", original_error=e)

    log_operation(
        logger,
        operation="import_products",
        outcome="success",
        products_created=result["created"],
        products_updated=result["updated"],
    )
    return result


def import_products_from_json(path: Union[str, Path]) -> Dict[str, int]:
    """Load a JSON list of product records (or {"products": [...]}) and import it."""
    with open(path, "r", encoding="utf-8") as fh:
        data = json.load(fh)
    if isinstance(data, dict):
        data = data.get("products", [])
    if not isinstance(data, list):
        raise ServiceValidationError(["Product file must contain a list of products"])
    return import_products(data)
