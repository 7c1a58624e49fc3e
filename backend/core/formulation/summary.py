"""
Main-ingredients digest stored on the formulation row.
"""

from typing import Any, Dict, List, Sequence

from .config import MAIN_INGREDIENTS_LIMIT
from .validation import entry_value


def build_main_ingredients(entries: Sequence[Any], limit: int = MAIN_INGREDIENTS_LIMIT) -> List[Dict[str, Any]]:
    """
    Top ``limit`` ingredients by percentage, highest first.

    ``sorted`` is stable, so entries with equal percentages keep their input order.
    """
    ranked = sorted(entries, key=lambda entry: float(entry_value(entry, "percentage", 0) or 0), reverse=True)
    return [
        {
            "ingredient_id": str(entry_value(entry, "ingredient_id")),
            "percentage": float(entry_value(entry, "percentage", 0) or 0),
        }
        for entry in ranked[:limit]
    ]
