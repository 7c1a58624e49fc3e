"""
Formulation read side
Composes formulations with their ingredient rows and the names of the
animal, production stage and ingredients they reference
"""

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from app.dependencies import optional_float
from app.models import Animal, Formulation, FormulationIngredient, Ingredient, ProductionStage
from app.utils import LIKE_ESCAPE, calculate_pagination, like_pattern, parse_uuid
from core.formulation.config import FORMULATION_SORT_FIELDS
from core.formulation.exceptions import NotFound, ValidationFailed


def _isoformat(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_formulation(formulation: Formulation, animal_name: Optional[str] = None,
                          animal_species: Optional[str] = None, stage_name: Optional[str] = None) -> Dict[str, Any]:
    return {
        "id": str(formulation.id),
        "name": formulation.name,
        "description": formulation.description,
        "formulation_type": formulation.formulation_type,
        "status": formulation.status,
        "animal_id": str(formulation.animal_id),
        "animal_name": animal_name,
        "animal_species": animal_species,
        "production_stage_id": str(formulation.production_stage_id),
        "stage_name": stage_name,
        "target_weight": optional_float(formulation.target_weight),
        "target_feed_intake": optional_float(formulation.target_feed_intake),
        "formulation_quantity": optional_float(formulation.formulation_quantity),
        "optimization_objective": formulation.optimization_objective,
        "total_cost": optional_float(formulation.total_cost),
        "cost_per_unit": optional_float(formulation.cost_per_unit),
        "cost_per_day": optional_float(formulation.cost_per_day),
        "nutritional_analysis": formulation.nutritional_analysis or {},
        "meets_requirements": formulation.meets_requirements,
        "ingredient_count": formulation.ingredient_count,
        "main_ingredients": formulation.main_ingredients or [],
        "dry_matter_basis": formulation.dry_matter_basis,
        "moisture_content": optional_float(formulation.moisture_content),
        "is_public": formulation.is_public,
        "tags": formulation.tags or [],
        "version": formulation.version,
        "parent_formulation_id": str(formulation.parent_formulation_id) if formulation.parent_formulation_id else None,
        "created_by": formulation.created_by,
        "updated_by": formulation.updated_by,
        "created_at": _isoformat(formulation.created_at),
        "updated_at": _isoformat(formulation.updated_at),
    }


def serialize_formulation_ingredient(row: FormulationIngredient, ingredient: Optional[Ingredient] = None) -> Dict[str, Any]:
    return {
        "id": str(row.id),
        "formulation_id": str(row.formulation_id),
        "ingredient_id": str(row.ingredient_id),
        "ingredient_name": ingredient.name if ingredient else None,
        "ingredient_category": ingredient.category if ingredient else None,
        "ingredient_cost_per_unit": optional_float(ingredient.cost_per_unit) if ingredient else None,
        "ingredient_unit": ingredient.unit if ingredient else None,
        "quantity": optional_float(row.quantity),
        "percentage": optional_float(row.percentage),
        "proportion": optional_float(row.proportion),
        "cost_contribution": optional_float(row.cost_contribution),
        "cost_percentage": optional_float(row.cost_percentage),
        "ingredient_role": row.ingredient_role,
        "is_essential": row.is_essential,
        "sequence_order": row.sequence_order,
        "display_order": row.display_order,
    }


def _formulation_query(db: Session):
    return db.query(
        Formulation,
        Animal.display_name.label("animal_name"),
        Animal.species.label("animal_species"),
        ProductionStage.name.label("stage_name"),
    ).outerjoin(
        Animal, Formulation.animal_id == Animal.id
    ).outerjoin(
        ProductionStage, Formulation.production_stage_id == ProductionStage.id
    )


def get_formulation_ingredients(db: Session, formulation_id) -> List[Dict[str, Any]]:
    """
    Ingredient rows of a formulation, by display order, with ingredient details
    """
    rows = db.query(FormulationIngredient, Ingredient).outerjoin(
        Ingredient, FormulationIngredient.ingredient_id == Ingredient.id
    ).filter(
        FormulationIngredient.formulation_id == formulation_id
    ).order_by(FormulationIngredient.display_order.asc()).all()
    return [serialize_formulation_ingredient(row, ingredient) for row, ingredient in rows]


def get_formulation(db: Session, formulation_id) -> Dict[str, Any]:
    """
    Get a formulation with its ordered ingredient rows

    Args:
        db: Database session
        formulation_id: Formulation UUID

    Returns:
        Formulation fields, display names and an ``ingredients`` list

    Raises:
        NotFound: If the formulation does not exist
    """
    formulation_uuid = parse_uuid(formulation_id)
    result = _formulation_query(db).filter(Formulation.id == formulation_uuid).first()
    if result is None:
        raise NotFound("Formulation", formulation_id)

    formulation, animal_name, animal_species, stage_name = result
    data = serialize_formulation(formulation, animal_name, animal_species, stage_name)
    data["ingredients"] = get_formulation_ingredients(db, formulation_uuid)
    return data


def list_formulations(
    db: Session,
    search: Optional[str] = None,
    animal_id: Optional[str] = None,
    production_stage_id: Optional[str] = None,
    status: Optional[str] = None,
    formulation_type: Optional[str] = None,
    is_public: Optional[bool] = None,
    created_by: Optional[str] = None,
    page: int = 1,
    limit: int = 20,
    sort_field: str = "created_at",
    sort_direction: str = "desc",
) -> Dict[str, Any]:
    """
    Paginated formulation list with search, filters and sorting

    Returns:
        ``{"data": [...], "pagination": {...}}``
    """
    if sort_field not in FORMULATION_SORT_FIELDS:
        raise ValidationFailed({"sort_field": [f"Must be one of: {', '.join(FORMULATION_SORT_FIELDS)}"]})
    if sort_direction not in ("asc", "desc"):
        raise ValidationFailed({"sort_direction": ["Must be 'asc' or 'desc'"]})

    query = _formulation_query(db)
    if search:
        query = query.filter(Formulation.name.ilike(like_pattern(search), escape=LIKE_ESCAPE))
    if animal_id:
        query = query.filter(Formulation.animal_id == parse_uuid(animal_id, "animal_id"))
    if production_stage_id:
        query = query.filter(Formulation.production_stage_id == parse_uuid(production_stage_id, "production_stage_id"))
    if status:
        query = query.filter(Formulation.status == status)
    if formulation_type:
        query = query.filter(Formulation.formulation_type == formulation_type)
    if is_public is not None:
        query = query.filter(Formulation.is_public == is_public)
    if created_by:
        query = query.filter(Formulation.created_by == created_by)

    total = query.count()
    column = getattr(Formulation, sort_field)
    order = column.asc() if sort_direction == "asc" else column.desc()
    rows = query.order_by(order, Formulation.id).offset((page - 1) * limit).limit(limit).all()

    return {
        "data": [
            serialize_formulation(formulation, animal_name, animal_species, stage_name)
            for formulation, animal_name, animal_species, stage_name in rows
        ],
        "pagination": calculate_pagination(page, limit, total),
    }


def get_formulation_types(db: Session) -> List[str]:
    """Distinct formulation types currently in use"""
    rows = db.query(Formulation.formulation_type).distinct().order_by(Formulation.formulation_type).all()
    return [row.formulation_type for row in rows if row.formulation_type]
