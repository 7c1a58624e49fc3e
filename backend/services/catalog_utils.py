"""
Catalogue utilities for the Feed Formulation Records service
Lookups and writes for ingredients, animals and production stages
"""

import uuid
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.dependencies import run_atomic
from app.models import (
    Animal,
    AnimalCreate,
    AnimalUpdate,
    Formulation,
    FormulationIngredient,
    Ingredient,
    IngredientCreate,
    IngredientUpdate,
    ProductionStage,
    ProductionStageCreate,
    ProductionStageUpdate,
)
from app.utils import LIKE_ESCAPE, like_pattern, parse_uuid
from core.formulation.config import INGREDIENT_SORT_FIELDS
from core.formulation.exceptions import InvalidState, NotFound, ValidationFailed
from middleware.logging_config import get_logger, log_database_operation

logger = get_logger("catalog_utils")

# NOT NULL columns a partial update may not set to null
INGREDIENT_REQUIRED_FIELDS = ("name", "cost_per_unit", "unit", "is_available")
ANIMAL_REQUIRED_FIELDS = ("species", "animal_type", "display_name", "is_active")
STAGE_REQUIRED_FIELDS = ("name", "display_name", "stage_type", "is_active")


# ===================================================================
# INGREDIENT LOOKUPS
# ===================================================================

def resolve_unit_costs(db: Session, ingredient_ids: Iterable) -> Dict[uuid.UUID, Optional[float]]:
    """
    Batch lookup of ingredient unit costs
    Args:
        db: Database session
        ingredient_ids: Ingredient UUIDs
    Returns:
        Mapping of ingredient id to cost per unit; unknown ids are absent
    """
    ids = list(ingredient_ids)
    if not ids:
        return {}
    rows = db.query(Ingredient.id, Ingredient.cost_per_unit).filter(Ingredient.id.in_(ids)).all()
    return {row.id: (float(row.cost_per_unit) if row.cost_per_unit is not None else None) for row in rows}


def find_missing_ingredient_ids(db: Session, ingredient_ids: Iterable) -> List[uuid.UUID]:
    """
    Ingredient ids that have no ingredient row, in the order given
    """
    ids = list(ingredient_ids)
    if not ids:
        return []
    found = {row.id for row in db.query(Ingredient.id).filter(Ingredient.id.in_(ids)).all()}
    return [ingredient_id for ingredient_id in ids if ingredient_id not in found]


def get_ingredient_by_id(db: Session, ingredient_id) -> Optional[Ingredient]:
    return db.query(Ingredient).filter(Ingredient.id == parse_uuid(ingredient_id, "ingredient_id")).first()


def require_ingredient(db: Session, ingredient_id) -> Ingredient:
    ingredient = get_ingredient_by_id(db, ingredient_id)
    if not ingredient:
        raise NotFound("Ingredient", ingredient_id)
    return ingredient


def find_ingredient_by_name(db: Session, name: str) -> Optional[Ingredient]:
    """Case-insensitive lookup on the trimmed name"""
    return db.query(Ingredient).filter(func.lower(Ingredient.name) == name.strip().lower()).first()


def reject_cleared_fields(changes: Dict, required: Iterable[str]):
    """
    Raise when a partial update sets a NOT NULL column to null
    Raises:
        ValidationFailed: Keyed by every cleared field
    """
    cleared = [field for field in required if field in changes and changes[field] is None]
    if cleared:
        raise ValidationFailed({field: ["This field cannot be cleared"] for field in cleared})


def list_ingredients(
    db: Session,
    search: Optional[str] = None,
    category: Optional[str] = None,
    is_available: Optional[bool] = None,
    offset: int = 0,
    limit: int = 20,
    sort_field: str = "name",
    sort_direction: str = "asc",
) -> Tuple[List[Ingredient], int]:
    """
    Filtered, paginated ingredient query
    Returns:
        (ingredients on the page, total matching)
    """
    if sort_field not in INGREDIENT_SORT_FIELDS:
        raise ValidationFailed({"sort_field": [f"Must be one of: {', '.join(INGREDIENT_SORT_FIELDS)}"]})
    if sort_direction not in ("asc", "desc"):
        raise ValidationFailed({"sort_direction": ["Must be 'asc' or 'desc'"]})

    query = db.query(Ingredient)
    if search:
        query = query.filter(Ingredient.name.ilike(like_pattern(search), escape=LIKE_ESCAPE))
    if category:
        query = query.filter(Ingredient.category == category)
    if is_available is not None:
        query = query.filter(Ingredient.is_available == is_available)

    total = query.count()
    column = getattr(Ingredient, sort_field)
    order = column.asc() if sort_direction == "asc" else column.desc()
    return query.order_by(order).offset(offset).limit(limit).all(), total


def get_ingredient_categories(db: Session) -> List[str]:
    rows = db.query(Ingredient.category).filter(Ingredient.category.isnot(None)).distinct().order_by(Ingredient.category).all()
    return [row.category for row in rows if row.category]


def create_ingredient(db: Session, data: IngredientCreate) -> Ingredient:
    if find_ingredient_by_name(db, data.name):
        raise ValidationFailed({"name": [f"An ingredient named '{data.name}' already exists"]})

    ingredient = Ingredient(**data.model_dump())
    with run_atomic(db):
        db.add(ingredient)
    db.refresh(ingredient)
    log_database_operation(logger, "INSERT", "ingredients", 1, name=ingredient.name)
    return ingredient


def update_ingredient(db: Session, ingredient_id, data: IngredientUpdate) -> Ingredient:
    ingredient = require_ingredient(db, ingredient_id)
    changes = data.model_dump(exclude_unset=True)
    reject_cleared_fields(changes, INGREDIENT_REQUIRED_FIELDS)
    if "name" in changes and changes["name"] != ingredient.name:
        clash = find_ingredient_by_name(db, changes["name"])
        if clash and clash.id != ingredient.id:
            raise ValidationFailed({"name": [f"An ingredient named '{changes['name']}' already exists"]})

    with run_atomic(db):
        for field, value in changes.items():
            setattr(ingredient, field, value)
    db.refresh(ingredient)
    log_database_operation(logger, "UPDATE", "ingredients", 1, id=str(ingredient.id), fields=sorted(changes))
    return ingredient


def delete_ingredient(db: Session, ingredient_id) -> str:
    """
    Delete an ingredient that no formulation uses
    Returns:
        Name of the deleted ingredient
    """
    ingredient = require_ingredient(db, ingredient_id)
    usage = db.query(func.count(FormulationIngredient.id)).filter(
        FormulationIngredient.ingredient_id == ingredient.id
    ).scalar() or 0
    if usage:
        raise InvalidState(
            "Cannot delete ingredient in use",
            detail=f"Ingredient is used in {usage} formulation(s). Remove it from those formulations first",
        )

    name = ingredient.name
    with run_atomic(db):
        db.delete(ingredient)
    log_database_operation(logger, "DELETE", "ingredients", 1, name=name)
    return name


# ===================================================================
# ANIMALS AND PRODUCTION STAGES
# ===================================================================

def get_animal_by_id(db: Session, animal_id) -> Optional[Animal]:
    return db.query(Animal).filter(Animal.id == parse_uuid(animal_id, "animal_id")).first()


def require_animal(db: Session, animal_id) -> Animal:
    animal = get_animal_by_id(db, animal_id)
    if not animal:
        raise NotFound("Animal", animal_id)
    return animal


def get_production_stage_by_id(db: Session, stage_id) -> Optional[ProductionStage]:
    return db.query(ProductionStage).filter(
        ProductionStage.id == parse_uuid(stage_id, "production_stage_id")
    ).first()


def require_production_stage(db: Session, stage_id) -> ProductionStage:
    stage = get_production_stage_by_id(db, stage_id)
    if not stage:
        raise NotFound("Production stage", stage_id)
    return stage


def list_animals(db: Session, search: Optional[str] = None, animal_type: Optional[str] = None) -> List[Animal]:
    query = db.query(Animal).filter(Animal.is_active == True)
    if search:
        query = query.filter(Animal.display_name.ilike(like_pattern(search), escape=LIKE_ESCAPE))
    if animal_type:
        query = query.filter(Animal.animal_type == animal_type)
    return query.order_by(Animal.display_name).all()


def create_animal(db: Session, data: AnimalCreate) -> Animal:
    animal = Animal(**data.model_dump())
    with run_atomic(db):
        db.add(animal)
    db.refresh(animal)
    log_database_operation(logger, "INSERT", "animals", 1, display_name=animal.display_name)
    return animal


def list_production_stages(db: Session, animal_id) -> List[ProductionStage]:
    animal = require_animal(db, animal_id)
    return db.query(ProductionStage).filter(
        ProductionStage.animal_id == animal.id,
        ProductionStage.is_active == True,
    ).order_by(ProductionStage.start_age_days, ProductionStage.name).all()


def create_production_stage(db: Session, animal_id, data: ProductionStageCreate) -> ProductionStage:
    animal = require_animal(db, animal_id)
    if (data.start_age_days is not None and data.end_age_days is not None
            and data.end_age_days < data.start_age_days):
        raise ValidationFailed({"end_age_days": ["End age must not be before start age"]})

    stage = ProductionStage(animal_id=animal.id, **data.model_dump())
    with run_atomic(db):
        db.add(stage)
    db.refresh(stage)
    log_database_operation(logger, "INSERT", "production_stages", 1, animal=animal.display_name, name=stage.name)
    return stage


def update_animal(db: Session, animal_id, data: AnimalUpdate) -> Animal:
    animal = require_animal(db, animal_id)
    changes = data.model_dump(exclude_unset=True)
    reject_cleared_fields(changes, ANIMAL_REQUIRED_FIELDS)

    with run_atomic(db):
        for field, value in changes.items():
            setattr(animal, field, value)
    db.refresh(animal)
    log_database_operation(logger, "UPDATE", "animals", 1, id=str(animal.id), fields=sorted(changes))
    return animal


def delete_animal(db: Session, animal_id) -> str:
    """
    Delete an animal with no production stages and no formulations
    Returns:
        Display name of the deleted animal
    """
    animal = require_animal(db, animal_id)
    stage_count = db.query(func.count(ProductionStage.id)).filter(ProductionStage.animal_id == animal.id).scalar() or 0
    if stage_count:
        raise InvalidState(
            "Cannot delete animal",
            detail="This animal has associated production stages. Delete them first",
        )
    usage = db.query(func.count(Formulation.id)).filter(Formulation.animal_id == animal.id).scalar() or 0
    if usage:
        raise InvalidState(
            "Cannot delete animal",
            detail=f"Animal is used by {usage} formulation(s)",
        )

    display_name = animal.display_name
    with run_atomic(db):
        db.delete(animal)
    log_database_operation(logger, "DELETE", "animals", 1, display_name=display_name)
    return display_name


def update_production_stage(db: Session, stage_id, data: ProductionStageUpdate) -> ProductionStage:
    stage = require_production_stage(db, stage_id)
    changes = data.model_dump(exclude_unset=True)
    reject_cleared_fields(changes, STAGE_REQUIRED_FIELDS)

    start = changes.get("start_age_days", stage.start_age_days)
    end = changes.get("end_age_days", stage.end_age_days)
    if start is not None and end is not None and end < start:
        raise ValidationFailed({"end_age_days": ["End age must not be before start age"]})

    with run_atomic(db):
        for field, value in changes.items():
            setattr(stage, field, value)
    db.refresh(stage)
    log_database_operation(logger, "UPDATE", "production_stages", 1, id=str(stage.id), fields=sorted(changes))
    return stage


def delete_production_stage(db: Session, stage_id) -> str:
    """
    Delete a production stage no formulation targets
    Returns:
        Name of the deleted stage
    """
    stage = require_production_stage(db, stage_id)
    usage = db.query(func.count(Formulation.id)).filter(Formulation.production_stage_id == stage.id).scalar() or 0
    if usage:
        raise InvalidState(
            "Cannot delete production stage",
            detail=f"Production stage is used by {usage} formulation(s)",
        )

    name = stage.name
    with run_atomic(db):
        db.delete(stage)
    log_database_operation(logger, "DELETE", "production_stages", 1, name=name)
    return name
