"""
Formulation write side
Create, update, delete, duplicate and status changes for formulations.

Every write runs in a single unit of work: the formulation row, its
ingredient rows and the derived fields (ingredient count, main ingredients,
cost allocation) commit together or not at all. Input problems are rejected
before the transaction opens.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.dependencies import run_atomic, safe_float
from app.models import (
    Formulation,
    FormulationCreate,
    FormulationIngredient,
    FormulationUpdate,
)
from app.utils import parse_uuid
from core.formulation.config import (
    COST_RECONCILIATION_TOLERANCE,
    MAX_COST_PERCENTAGE,
    FormulationStatus,
    version_check_enabled,
)
from core.formulation.cost_allocation import AllocationResult, allocate_costs
from core.formulation.exceptions import Conflict, InvalidState, NotFound, StorageError, ValidationFailed
from core.formulation.summary import build_main_ingredients
from core.formulation.validation import validate_input, validate_percentage_sum
from middleware.logging_config import get_logger, log_database_operation
from services.catalog_utils import (
    find_missing_ingredient_ids,
    reject_cleared_fields,
    require_animal,
    require_production_stage,
    resolve_unit_costs,
)
from services.formulation_reader import get_formulation

logger = get_logger("formulation_service")

# Metadata copied onto a duplicate; identity, status, timestamps and version are not
DUPLICATED_FIELDS = (
    "formulation_type",
    "animal_id",
    "production_stage_id",
    "target_weight",
    "target_feed_intake",
    "formulation_quantity",
    "optimization_objective",
    "total_cost",
    "cost_per_unit",
    "cost_per_day",
    "nutritional_analysis",
    "meets_requirements",
    "dry_matter_basis",
    "moisture_content",
    "is_public",
    "tags",
    "created_by",
)

# Columns an update may change but never clear
REQUIRED_FIELDS = (
    "name",
    "formulation_type",
    "animal_id",
    "production_stage_id",
    "formulation_quantity",
    "optimization_objective",
    "total_cost",
    "cost_per_unit",
    "nutritional_analysis",
    "meets_requirements",
    "dry_matter_basis",
    "is_public",
    "status",
)


# ===================================================================
# HELPERS
# ===================================================================

def _load_formulation(db: Session, formulation_id) -> Formulation:
    formulation = db.query(Formulation).filter(Formulation.id == parse_uuid(formulation_id)).first()
    if not formulation:
        raise NotFound("Formulation", formulation_id)
    return formulation


def _ensure_editable(formulation: Formulation, action: str):
    if formulation.status == FormulationStatus.ACTIVE.value:
        raise InvalidState(
            f"Cannot {action} active formulation",
            detail=f"Deactivate the formulation first before {'making changes' if action == 'edit' else 'deleting'}",
        )


def _ensure_ingredients_exist(db: Session, entries):
    missing = find_missing_ingredient_ids(db, [entry.ingredient_id for entry in entries])
    if missing:
        raise NotFound("Ingredient", ", ".join(str(m) for m in missing))


def _allocate(db: Session, formulation: Formulation, entries) -> AllocationResult:
    allocation = allocate_costs(entries, lambda ids: resolve_unit_costs(db, ids), safe_float(formulation.total_cost))

    declared = allocation.total_cost
    computed = allocation.computed_total_cost
    if abs(declared - computed) > COST_RECONCILIATION_TOLERANCE:
        logger.warning(
            f"Formulation {formulation.id}: declared total cost {declared:.2f} differs from "
            f"ingredient contributions {computed:.2f}; cost shares use the declared total"
        )
    if any(cost.cost_percentage > MAX_COST_PERCENTAGE for cost in allocation):
        raise ValidationFailed({"total_cost": ["Declared total cost is too small for the ingredient costs"]})
    return allocation


def _build_ingredient_rows(formulation: Formulation, entries, allocation: AllocationResult) -> List[FormulationIngredient]:
    rows = []
    for index, (entry, cost) in enumerate(zip(entries, allocation)):
        rows.append(FormulationIngredient(
            formulation_id=formulation.id,
            ingredient_id=entry.ingredient_id,
            quantity=entry.quantity,
            percentage=entry.percentage,
            proportion=entry.percentage / 100,
            cost_contribution=cost.cost_contribution,
            cost_percentage=cost.cost_percentage,
            ingredient_role=entry.ingredient_role,
            is_essential=entry.is_essential,
            sequence_order=index,
            display_order=index,
        ))
    return rows


def _apply_ingredient_set(db: Session, formulation: Formulation, entries):
    """Write the ingredient rows and the fields derived from them."""
    allocation = _allocate(db, formulation, entries)
    rows = _build_ingredient_rows(formulation, entries, allocation)
    db.add_all(rows)
    formulation.ingredient_count = len(entries)
    formulation.main_ingredients = build_main_ingredients(entries)
    db.flush()
    return rows


# ===================================================================
# OPERATIONS
# ===================================================================

def create_formulation(db: Session, data) -> Dict[str, Any]:
    """
    Create a draft formulation with its ingredients

    Args:
        db: Database session
        data: FormulationCreate or an equivalent dict

    Returns:
        The stored formulation as composed by the reader

    Raises:
        ValidationFailed, InvalidIngredientMix, NotFound, StorageError
    """
    payload = validate_input(FormulationCreate, data)
    entries = payload.ingredients
    total = validate_percentage_sum(entries)

    require_animal(db, payload.animal_id)
    require_production_stage(db, payload.production_stage_id)
    _ensure_ingredients_exist(db, entries)

    metadata = payload.model_dump(exclude={"ingredients"})
    try:
        with run_atomic(db):
            formulation = Formulation(
                **metadata,
                status=FormulationStatus.DRAFT.value,
                ingredient_count=len(entries),
                main_ingredients=build_main_ingredients(entries),
            )
            db.add(formulation)
            db.flush()
            _apply_ingredient_set(db, formulation, entries)
            formulation_id = formulation.id
    except SQLAlchemyError as e:
        logger.error(f"Error creating formulation '{payload.name}': {str(e)}", exc_info=True)
        raise StorageError("create the formulation") from e

    log_database_operation(
        logger, "INSERT", "formulations", 1,
        id=str(formulation_id), name=payload.name, ingredients=len(entries), percentage_sum=round(total, 2),
    )
    return get_formulation(db, formulation_id)


def update_formulation(db: Session, formulation_id, data, enforce_version: Optional[bool] = None) -> Dict[str, Any]:
    """
    Update a formulation that is not active

    Metadata fields are applied as given. When ``ingredients`` is present the
    whole ingredient set is replaced and costs, ingredient count and main
    ingredients are recomputed against the (possibly updated) total cost.

    Args:
        db: Database session
        formulation_id: Formulation UUID
        data: FormulationUpdate or an equivalent dict
        enforce_version: Require and check ``expected_version``; defaults to
            the FORMULATION_VERSION_CHECK setting

    Raises:
        ValidationFailed, InvalidIngredientMix, NotFound, InvalidState, Conflict, StorageError
    """
    payload = validate_input(FormulationUpdate, data)
    formulation = _load_formulation(db, formulation_id)
    _ensure_editable(formulation, "edit")

    changes = payload.model_dump(exclude_unset=True)
    entries = payload.ingredients if "ingredients" in changes and payload.ingredients is not None else None
    changes.pop("ingredients", None)
    expected_version = changes.pop("expected_version", None)

    reject_cleared_fields(changes, REQUIRED_FIELDS)

    if enforce_version is None:
        enforce_version = version_check_enabled()
    if enforce_version and expected_version is None:
        raise ValidationFailed({"expected_version": ["Required when version checking is enabled"]})

    if entries is not None:
        validate_percentage_sum(entries)
        _ensure_ingredients_exist(db, entries)
    if changes.get("animal_id") is not None:
        require_animal(db, changes["animal_id"])
    if changes.get("production_stage_id") is not None:
        require_production_stage(db, changes["production_stage_id"])

    try:
        with run_atomic(db):
            if enforce_version:
                matched = db.query(Formulation).filter(
                    Formulation.id == formulation.id,
                    Formulation.version == expected_version,
                ).update({Formulation.version: Formulation.version + 1}, synchronize_session=False)
                if not matched:
                    raise Conflict(
                        "Formulation was modified by someone else",
                        detail=f"Expected version {expected_version}; reload the formulation and retry",
                    )
                db.refresh(formulation)

            for field, value in changes.items():
                setattr(formulation, field, value)

            if entries is not None:
                # Old rows must be gone before the replacements are inserted
                formulation.ingredients.clear()
                db.flush()
                _apply_ingredient_set(db, formulation, entries)

            formulation.updated_at = datetime.utcnow()
    except SQLAlchemyError as e:
        logger.error(f"Error updating formulation {formulation_id}: {str(e)}", exc_info=True)
        raise StorageError("update the formulation") from e

    log_database_operation(
        logger, "UPDATE", "formulations", 1,
        id=str(formulation.id), fields=sorted(changes), ingredients_replaced=entries is not None,
    )
    return get_formulation(db, formulation.id)


def delete_formulation(db: Session, formulation_id) -> str:
    """
    Delete a formulation that is not active; its ingredient rows go with it

    Returns:
        Name of the deleted formulation
    """
    formulation = _load_formulation(db, formulation_id)
    _ensure_editable(formulation, "delete")

    name = formulation.name
    try:
        with run_atomic(db):
            db.delete(formulation)
    except SQLAlchemyError as e:
        logger.error(f"Error deleting formulation {formulation_id}: {str(e)}", exc_info=True)
        raise StorageError("delete the formulation") from e

    log_database_operation(logger, "DELETE", "formulations", 1, id=str(formulation_id), name=name)
    return name


def duplicate_formulation(db: Session, formulation_id, new_name: str) -> Dict[str, Any]:
    """
    Copy a formulation into a new draft

    Metadata and ingredient proportions are copied; ingredient costs are
    recomputed from current unit costs.
    """
    original = get_formulation(db, formulation_id)

    new_data = {field: original[field] for field in DUPLICATED_FIELDS}
    new_data["name"] = new_name
    new_data["description"] = (
        f"Copy of: {original['description']}" if original["description"] else f"Copy of {original['name']}"
    )
    new_data["parent_formulation_id"] = original["id"]
    new_data["ingredients"] = [
        {
            "ingredient_id": row["ingredient_id"],
            "quantity": row["quantity"],
            "percentage": row["percentage"],
            "ingredient_role": row["ingredient_role"],
            "is_essential": row["is_essential"],
        }
        for row in original["ingredients"]
    ]

    logger.info(f"Duplicating formulation {original['id']} ('{original['name']}') as '{new_name}'")
    return create_formulation(db, new_data)


def toggle_formulation_status(db: Session, formulation_id, activate: bool) -> Dict[str, Any]:
    """
    Activate a formulation, or return it to draft so it can be edited again
    """
    formulation = _load_formulation(db, formulation_id)
    new_status = FormulationStatus.ACTIVE.value if activate else FormulationStatus.DRAFT.value
    previous = formulation.status

    try:
        with run_atomic(db):
            formulation.status = new_status
            formulation.updated_at = datetime.utcnow()
    except SQLAlchemyError as e:
        logger.error(f"Error changing status of formulation {formulation_id}: {str(e)}", exc_info=True)
        raise StorageError("change the formulation status") from e

    logger.info(f"Formulation {formulation.id} status {previous} -> {new_status}")
    return get_formulation(db, formulation.id)
