"""
Input validation for formulation writes.

Two checks run before any transaction opens:
- schema validation of the raw payload (field level, ``ValidationFailed``)
- the ingredient mix check: percentages must add up to 100 within tolerance
  (``InvalidIngredientMix``)
"""

from typing import Any, Dict, Iterable, List, Sequence, Type, TypeVar

from pydantic import BaseModel, ValidationError

from .config import PERCENTAGE_TARGET, PERCENTAGE_TOLERANCE
from .exceptions import InvalidIngredientMix, ValidationFailed

ModelT = TypeVar("ModelT", bound=BaseModel)


def entry_value(entry: Any, name: str, default: Any = None) -> Any:
    """Read a field from an ingredient entry given as a model or a plain dict."""
    if isinstance(entry, dict):
        return entry.get(name, default)
    return getattr(entry, name, default)


def total_percentage(entries: Iterable[Any]) -> float:
    return sum(float(entry_value(entry, "percentage", 0) or 0) for entry in entries)


def validate_percentage_sum(entries: Sequence[Any]) -> float:
    """
    Check that the ingredient percentages sum to 100 within tolerance.

    Args:
        entries: Ingredient entries carrying a ``percentage`` value

    Returns:
        float: The computed sum

    Raises:
        InvalidIngredientMix: If the sum deviates from 100 by more than 0.1
    """
    total = total_percentage(entries)
    if abs(total - PERCENTAGE_TARGET) > PERCENTAGE_TOLERANCE:
        raise InvalidIngredientMix(total)
    return total


def field_errors_from_pydantic(errors: List[Dict[str, Any]], skip_prefixes=("body", "query", "path")) -> Dict[str, List[str]]:
    """
    Collapse pydantic/FastAPI error entries into a field -> messages map.

    Field paths are joined with dots, e.g. ``ingredients.0.quantity``.
    """
    field_errors: Dict[str, List[str]] = {}
    for error in errors:
        loc = list(error.get("loc", ()))
        if loc and loc[0] in skip_prefixes:
            loc = loc[1:]
        field = ".".join(str(part) for part in loc) or "__root__"
        field_errors.setdefault(field, []).append(error.get("msg", "Invalid value"))
    return field_errors


def validate_input(schema: Type[ModelT], data: Any) -> ModelT:
    """
    Parse ``data`` into ``schema``.

    Already-parsed instances pass straight through.

    Raises:
        ValidationFailed: With the field-keyed messages from pydantic
    """
    if isinstance(data, schema):
        return data
    if data is None:
        raise ValidationFailed({"__root__": ["Request body is required"]})
    try:
        return schema.model_validate(data)
    except ValidationError as exc:
        raise ValidationFailed(field_errors_from_pydantic(exc.errors()))
