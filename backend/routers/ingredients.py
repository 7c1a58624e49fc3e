"""
Ingredients Router
Catalogue of feed ingredients and their unit costs
"""

from fastapi import APIRouter, Depends, File, Query, Response, UploadFile, status
from sqlalchemy.orm import Session
from typing import Optional

from app.dependencies import get_db, optional_float
from app.models import Ingredient, IngredientCreate, IngredientUpdate
from app.utils import calculate_pagination
from core.formulation.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from middleware.logging_config import get_logger
from services.catalog_utils import (
    create_ingredient,
    delete_ingredient,
    get_ingredient_categories,
    list_ingredients,
    require_ingredient,
    update_ingredient,
)
from services.export_service import export_ingredients_csv
from services.import_service import import_ingredients, import_template_csv, read_import_file

logger = get_logger("api.ingredients")

router = APIRouter(prefix="/ingredients", tags=["Ingredients"])


def ingredient_to_dict(ingredient: Ingredient) -> dict:
    return {
        "id": str(ingredient.id),
        "name": ingredient.name,
        "description": ingredient.description,
        "category": ingredient.category,
        "supplier": ingredient.supplier,
        "cost_per_unit": optional_float(ingredient.cost_per_unit),
        "unit": ingredient.unit,
        "dry_matter_percentage": optional_float(ingredient.dry_matter_percentage),
        "is_available": ingredient.is_available,
        "created_by": ingredient.created_by,
        "created_at": ingredient.created_at.isoformat() if ingredient.created_at else None,
        "updated_at": ingredient.updated_at.isoformat() if ingredient.updated_at else None,
    }


@router.get("/")
async def search_ingredients(
    search: Optional[str] = Query(None, description="Case-insensitive match on ingredient name"),
    category: Optional[str] = Query(None, description="Filter by category"),
    is_available: Optional[bool] = Query(None, description="Filter by availability"),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    sort_field: str = Query("name", description="name, category, cost_per_unit or created_at"),
    sort_direction: str = Query("asc", description="asc or desc"),
    db: Session = Depends(get_db)
):
    """Search and page through the ingredient catalogue"""
    ingredients, total = list_ingredients(
        db,
        search=search,
        category=category,
        is_available=is_available,
        offset=(page - 1) * limit,
        limit=limit,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )
    return {
        "success": True,
        "data": [ingredient_to_dict(ingredient) for ingredient in ingredients],
        "pagination": calculate_pagination(page, limit, total),
    }


@router.get("/categories")
async def get_categories(db: Session = Depends(get_db)):
    """Distinct ingredient categories"""
    return {"success": True, "data": get_ingredient_categories(db)}


@router.get("/export")
async def export_ingredients(db: Session = Depends(get_db)):
    """Download the ingredient catalogue as CSV"""
    csv_text, count = export_ingredients_csv(db)
    logger.info(f"Ingredient export requested: {count} records")
    return Response(
        content=csv_text,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="ingredients.csv"'},
    )


@router.get("/import/template")
async def download_import_template():
    """CSV with the import columns and one example row"""
    return Response(
        content=import_template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="ingredient_import_template.csv"'},
    )


@router.post("/import")
async def bulk_import_ingredients(
    file: UploadFile = File(..., description="CSV or Excel file with one ingredient per row"),
    update_existing: bool = Query(False, description="Overwrite ingredients whose name already exists"),
    dry_run: bool = Query(False, description="Validate the rows without saving"),
    db: Session = Depends(get_db)
):
    """
    Bulk import ingredients

    - **file**: columns as in the import template; name and cost_per_unit are required
    - **update_existing**: update matching names instead of skipping them
    - **dry_run**: report row errors only
    """
    logger.info(f"Ingredient import requested: {file.filename}")
    df = read_import_file(file.filename, await file.read())
    summary = import_ingredients(db, df, update_existing=update_existing, dry_run=dry_run)

    if dry_run:
        message = f"Validation completed: {summary['valid_rows']} valid, {summary['failed']} with errors"
    else:
        message = (
            f"Import completed: {summary['created']} created, {summary['updated']} updated, "
            f"{summary['skipped']} skipped, {summary['failed']} errors"
        )
    return {"success": True, "data": summary, "message": message}


@router.get("/{ingredient_id}")
async def get_ingredient(ingredient_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": ingredient_to_dict(require_ingredient(db, ingredient_id))}


@router.post("/", status_code=status.HTTP_201_CREATED)
async def add_ingredient(payload: IngredientCreate, db: Session = Depends(get_db)):
    ingredient = create_ingredient(db, payload)
    return {
        "success": True,
        "data": ingredient_to_dict(ingredient),
        "message": "Ingredient created successfully",
    }


@router.put("/{ingredient_id}")
async def edit_ingredient(ingredient_id: str, payload: IngredientUpdate, db: Session = Depends(get_db)):
    """
    Update an ingredient

    A new unit cost applies to formulations written afterwards; stored
    cost contributions are not recomputed.
    """
    ingredient = update_ingredient(db, ingredient_id, payload)
    return {
        "success": True,
        "data": ingredient_to_dict(ingredient),
        "message": "Ingredient updated successfully",
    }


@router.delete("/{ingredient_id}")
async def remove_ingredient(ingredient_id: str, db: Session = Depends(get_db)):
    """Delete an ingredient that no formulation uses"""
    name = delete_ingredient(db, ingredient_id)
    return {
        "success": True,
        "message": f"Ingredient '{name}' deleted successfully",
    }
