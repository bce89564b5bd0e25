"""Input validation helpers for request payloads."""
from __future__ import annotations
from typing import Any, Optional
from uuid import UUID

# RequestDetail.qty is a BIGINT column
MAX_QUANTITY = 2**63 - 1


def is_missing(value: Any) -> bool:
    """True for None, blank strings, the nil UUID and empty collections."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, UUID):
        return value.int == 0
    if isinstance(value, (list, tuple, set, dict)):
        return len(value) == 0
    return False


def any_missing(*values: Any) -> bool:
    """Check whether any mandatory value is missing."""
    return any(is_missing(value) for value in values)


def parse_uuid(raw: Any) -> Optional[UUID]:
    """Parse a RefNo or product id.

    Returns:
        The UUID, or None if the value is not a valid UUID
    """
    if isinstance(raw, UUID):
        return raw
    if not isinstance(raw, str):
        return None
    try:
        return UUID(raw.strip())
    except ValueError:
        return None


def parse_quantity(raw: Any) -> int:
    """Parse a selected-product quantity.

    Raises:
        ValueError: If the value is not an integer or exceeds the 64-bit column
    """
    if isinstance(raw, bool):
        raise ValueError("quantity must be an integer")
    if isinstance(raw, int):
        quantity = raw
    elif isinstance(raw, float) and raw.is_integer():
        quantity = int(raw)
    elif isinstance(raw, str):
        quantity = int(raw.strip())
    else:
        raise ValueError("quantity must be an integer")
    if quantity > MAX_QUANTITY:
        raise ValueError(f"quantity must not exceed {MAX_QUANTITY}")
    return quantity
