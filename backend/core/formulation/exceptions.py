"""
Error kinds raised by the formulation engine.

Every error carries a machine-readable ``kind``, a human readable message and
the HTTP status the API layer answers with. Validation errors also carry a
field -> messages map.
"""

from typing import Dict, List, Optional


class FormulationError(Exception):
    kind = "FormulationError"
    http_status = 400

    def __init__(self, message: str, detail: Optional[str] = None,
                 field_errors: Optional[Dict[str, List[str]]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail
        self.field_errors = field_errors or {}

    def to_dict(self) -> dict:
        payload = {
            "success": False,
            "error": self.kind,
            "message": self.message,
        }
        if self.detail:
            payload["detail"] = self.detail
        if self.field_errors:
            payload["validation_errors"] = self.field_errors
        return payload


class InvalidIngredientMix(FormulationError):
    """Ingredient percentages do not add up to 100."""

    kind = "InvalidIngredientMix"
    http_status = 422

    def __init__(self, total_percentage: float):
        self.total_percentage = round(total_percentage, 1)
        super().__init__(
            "Invalid ingredient percentages",
            detail=f"Ingredient percentages must sum to 100%. Current sum: {self.total_percentage:.1f}%",
            field_errors={
                "ingredients": [f"Percentages sum to {self.total_percentage:.1f}%, expected 100%"]
            },
        )


class ValidationFailed(FormulationError):
    kind = "ValidationFailed"
    http_status = 422

    def __init__(self, field_errors: Dict[str, List[str]], message: str = "Validation failed"):
        super().__init__(message, field_errors=field_errors)


class NotFound(FormulationError):
    kind = "NotFound"
    http_status = 404

    def __init__(self, resource: str, identifier=None):
        self.resource = resource
        self.identifier = identifier
        message = f"{resource} not found"
        detail = f"No {resource.lower()} with id {identifier}" if identifier is not None else None
        super().__init__(message, detail=detail)


class InvalidState(FormulationError):
    """Attempted mutation of a record whose state forbids it."""

    kind = "InvalidState"
    http_status = 409


class Conflict(FormulationError):
    """The formulation changed since the caller read it."""

    kind = "Conflict"
    http_status = 409


class StorageError(FormulationError):
    kind = "StorageError"
    http_status = 500

    def __init__(self, operation: str):
        super().__init__(
            "Database operation failed",
            detail=f"Could not {operation}. No changes were saved; please try again.",
        )
