"""
Formulations Router
Endpoints for recording, listing, editing, duplicating and exporting
feed formulations
"""

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session
from typing import Optional

from app.dependencies import get_db
from app.models import (
    DuplicateFormulationRequest,
    FormulationCreate,
    FormulationStatusRequest,
    FormulationUpdate,
)
from core.formulation.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from middleware.logging_config import get_logger
from services.export_service import export_formulation_csv
from services.formulation_reader import get_formulation, get_formulation_types, list_formulations
from services.formulation_service import (
    create_formulation,
    delete_formulation,
    duplicate_formulation,
    toggle_formulation_status,
    update_formulation,
)

logger = get_logger("api.formulations")

router = APIRouter(prefix="/formulations", tags=["Formulations"])


@router.get("/")
async def get_formulations(
    search: Optional[str] = Query(None, description="Case-insensitive match on formulation name"),
    animal_id: Optional[str] = Query(None, description="Filter by animal UUID"),
    production_stage_id: Optional[str] = Query(None, description="Filter by production stage UUID"),
    status: Optional[str] = Query(None, description="draft, active, archived or template"),
    formulation_type: Optional[str] = Query(None, description="Optimal, Least Cost, Custom or Template"),
    is_public: Optional[bool] = Query(None),
    created_by: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort_field: str = Query("created_at", description="name, cost_per_unit, total_cost, created_at or updated_at"),
    sort_direction: str = Query("desc", description="asc or desc"),
    db: Session = Depends(get_db)
):
    """
    List formulations with search, filters, sorting and pagination

    Each item carries the animal and production stage display names.
    """
    result = list_formulations(
        db,
        search=search,
        animal_id=animal_id,
        production_stage_id=production_stage_id,
        status=status,
        formulation_type=formulation_type,
        is_public=is_public,
        created_by=created_by,
        page=page,
        limit=limit,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )
    logger.info(f"Listed {len(result['data'])} of {result['pagination']['total']} formulations (page {page})")
    return {"success": True, **result}


@router.get("/types")
async def get_types(db: Session = Depends(get_db)):
    """Distinct formulation types in use"""
    return {"success": True, "data": get_formulation_types(db)}


@router.get("/{formulation_id}")
async def get_formulation_by_id(formulation_id: str, db: Session = Depends(get_db)):
    """Get a formulation with its ingredient rows in display order"""
    return {"success": True, "data": get_formulation(db, formulation_id)}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def create_new_formulation(payload: FormulationCreate, db: Session = Depends(get_db)):
    """
    Record a new formulation

    The formulation starts as a draft. Ingredient percentages must sum to
    100% (within 0.1); each ingredient's cost contribution is computed from
    its current unit cost.
    """
    formulation = create_formulation(db, payload)
    return {
        "success": True,
        "data": formulation,
        "message": "Formulation created successfully",
    }


@router.put("/{formulation_id}")
async def update_existing_formulation(formulation_id: str, payload: FormulationUpdate, db: Session = Depends(get_db)):
    """
    Update a formulation that is not active

    Sending ``ingredients`` replaces the whole ingredient set.
    """
    formulation = update_formulation(db, formulation_id, payload)
    return {
        "success": True,
        "data": formulation,
        "message": "Formulation updated successfully",
    }


@router.delete("/{formulation_id}")
async def delete_existing_formulation(formulation_id: str, db: Session = Depends(get_db)):
    """Delete a formulation that is not active"""
    name = delete_formulation(db, formulation_id)
    return {
        "success": True,
        "message": f"Formulation '{name}' deleted successfully",
    }


@router.post("/{formulation_id}/duplicate", status_code=status.HTTP_201_CREATED)
async def duplicate_existing_formulation(
    formulation_id: str,
    payload: DuplicateFormulationRequest,
    db: Session = Depends(get_db)
):
    """Copy a formulation into a new draft under a new name"""
    formulation = duplicate_formulation(db, formulation_id, payload.name)
    return {
        "success": True,
        "data": formulation,
        "message": "Formulation duplicated successfully",
    }


@router.post("/{formulation_id}/status")
async def change_formulation_status(
    formulation_id: str,
    payload: FormulationStatusRequest,
    db: Session = Depends(get_db)
):
    """Activate a formulation, or return it to draft"""
    formulation = toggle_formulation_status(db, formulation_id, payload.activate)
    return {
        "success": True,
        "data": formulation,
        "message": f"Formulation {'activated' if payload.activate else 'deactivated'} successfully",
    }


@router.get("/{formulation_id}/export")
async def export_formulation(formulation_id: str, db: Session = Depends(get_db)):
    """Download a formulation's ingredient breakdown as CSV"""
    csv_text, name = export_formulation_csv(db, formulation_id)
    filename = "".join(c if c.isalnum() or c in "-_" else "_" for c in name) or "formulation"
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{filename}.csv"'},
    )
