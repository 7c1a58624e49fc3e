"""
Animals Router
Animals and the production stages formulations are written for
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from app.dependencies import get_db
from app.models import Animal, AnimalCreate, AnimalUpdate, ProductionStage, ProductionStageCreate, ProductionStageUpdate
from services.catalog_utils import (
    create_animal,
    create_production_stage,
    delete_animal,
    delete_production_stage,
    list_animals,
    list_production_stages,
    require_animal,
    update_animal,
    update_production_stage,
)

router = APIRouter(prefix="/animals", tags=["Animals"])


def animal_to_dict(animal: Animal) -> dict:
    return {
        "id": str(animal.id),
        "species": animal.species,
        "breed": animal.breed,
        "animal_type": animal.animal_type,
        "display_name": animal.display_name,
        "description": animal.description,
        "is_active": animal.is_active,
    }


def stage_to_dict(stage: ProductionStage) -> dict:
    return {
        "id": str(stage.id),
        "animal_id": str(stage.animal_id),
        "name": stage.name,
        "display_name": stage.display_name,
        "stage_type": stage.stage_type,
        "description": stage.description,
        "start_age_days": stage.start_age_days,
        "end_age_days": stage.end_age_days,
        "is_active": stage.is_active,
    }


@router.get("/")
async def get_animals(
    search: Optional[str] = Query(None, description="Match on display name"),
    animal_type: Optional[str] = Query(None, description="e.g. Poultry, Ruminant"),
    db: Session = Depends(get_db)
):
    animals = list_animals(db, search=search, animal_type=animal_type)
    return {"success": True, "data": [animal_to_dict(animal) for animal in animals]}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def add_animal(payload: AnimalCreate, db: Session = Depends(get_db)):
    animal = create_animal(db, payload)
    return {"success": True, "data": animal_to_dict(animal), "message": "Animal created successfully"}


@router.put("/stages/{stage_id}")
async def edit_stage(stage_id: str, payload: ProductionStageUpdate, db: Session = Depends(get_db)):
    stage = update_production_stage(db, stage_id, payload)
    return {"success": True, "data": stage_to_dict(stage), "message": "Production stage updated successfully"}


@router.delete("/stages/{stage_id}")
async def remove_stage(stage_id: str, db: Session = Depends(get_db)):
    name = delete_production_stage(db, stage_id)
    return {"success": True, "data": None, "message": f"Production stage '{name}' deleted successfully"}


@router.get("/{animal_id}")
async def get_animal(animal_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": animal_to_dict(require_animal(db, animal_id))}


@router.get("/{animal_id}/stages")
async def get_stages(animal_id: str, db: Session = Depends(get_db)):
    """Active production stages of an animal, youngest first"""
    stages = list_production_stages(db, animal_id)
    return {"success": True, "data": [stage_to_dict(stage) for stage in stages]}


@router.post("/{animal_id}/stages", status_code=status.HTTP_201_CREATED)
async def add_stage(animal_id: str, payload: ProductionStageCreate, db: Session = Depends(get_db)):
    stage = create_production_stage(db, animal_id, payload)
    return {"success": True, "data": stage_to_dict(stage), "message": "Production stage created successfully"}


@router.put("/{animal_id}")
async def edit_animal(animal_id: str, payload: AnimalUpdate, db: Session = Depends(get_db)):
    animal = update_animal(db, animal_id, payload)
    return {"success": True, "data": animal_to_dict(animal), "message": "Animal updated successfully"}


@router.delete("/{animal_id}")
async def remove_animal(animal_id: str, db: Session = Depends(get_db)):
    """Refused while the animal still has production stages or formulations"""
    display_name = delete_animal(db, animal_id)
    return {"success": True, "data": None, "message": f"Animal '{display_name}' deleted successfully"}
