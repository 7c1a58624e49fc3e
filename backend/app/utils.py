"""
Utility functions for the Feed Formulation Records service
"""

import math
import uuid
from decimal import Decimal, ROUND_HALF_UP
from typing import Union, Optional

from core.formulation.exceptions import ValidationFailed


def round_numeric_value(value: Union[str, float, int, None], decimal_places: int = 2) -> Optional[float]:
    """
    Round numeric values to specified decimal places with proper handling of edge cases.

    Args:
        value: The value to round (can be string, float, int, or None)
        decimal_places: Number of decimal places to round to (default: 2)

    Returns:
        Rounded float value or None if input is invalid

    Examples:
        >>> round_numeric_value("1.5660184237461616")
        1.57
        >>> round_numeric_value("inf")
        >>> round_numeric_value(1.234)
        1.23
    """
    if value is None:
        return None

    # Convert to string for consistent handling
    if isinstance(value, (int, float, Decimal)):
        value = str(value)

    # Handle empty strings and invalid values
    if not value or value.strip() == '':
        return None

    # Handle special cases
    value_lower = value.lower().strip()
    if value_lower in ['nan', 'inf', '-inf', 'null', 'none']:
        return None

    try:
        decimal_value = Decimal(value_lower)
        rounded_decimal = decimal_value.quantize(
            Decimal('0.' + '0' * decimal_places) if decimal_places > 0 else Decimal('1'),
            rounding=ROUND_HALF_UP
        )
        return float(rounded_decimal)

    except (ArithmeticError, ValueError, TypeError):
        return None


def parse_uuid(value, field: str = "id") -> uuid.UUID:
    """
    Coerce a path/body identifier into a UUID.

    Raises:
        ValidationFailed: If the value is not a valid UUID
    """
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise ValidationFailed({field: ["Invalid ID format"]})


LIKE_ESCAPE = "\\"


def like_pattern(search: str) -> str:
    """
    SQL LIKE pattern matching ``search`` literally anywhere in the value.

    ``%`` and ``_`` in the search text are escaped with ``LIKE_ESCAPE``,
    so callers must pass ``escape=LIKE_ESCAPE`` to ``ilike``.

    Examples:
        >>> like_pattern(" 50% ")
        '%50\\\\%%'
    """
    escaped = search.strip().replace(LIKE_ESCAPE, LIKE_ESCAPE * 2).replace("%", LIKE_ESCAPE + "%").replace("_", LIKE_ESCAPE + "_")
    return f"%{escaped}%"


def calculate_pagination(page: int, limit: int, total: int) -> dict:
    """
    Pagination metadata for list responses.

    Examples:
        >>> calculate_pagination(2, 20, 45)["total_pages"]
        3
    """
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": total_pages,
        "has_next": page < total_pages,
        "has_prev": page > 1,
    }
