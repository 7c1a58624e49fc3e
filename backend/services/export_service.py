"""
CSV exports for ingredients and formulations
"""

from typing import Tuple

import pandas as pd
from sqlalchemy.orm import Session

from app.models import Ingredient
from app.utils import round_numeric_value
from middleware.logging_config import get_logger
from services.formulation_reader import get_formulation

logger = get_logger("export_service")

INGREDIENT_EXPORT_COLUMNS = [
    "name", "category", "supplier", "cost_per_unit", "unit",
    "dry_matter_percentage", "is_available", "description",
]

FORMULATION_EXPORT_COLUMNS = [
    "display_order", "ingredient_name", "ingredient_category", "ingredient_role", "is_essential",
    "quantity", "percentage", "proportion", "ingredient_cost_per_unit", "ingredient_unit",
    "cost_contribution", "cost_percentage",
]


def export_ingredients_csv(db: Session) -> Tuple[str, int]:
    """
    Export the ingredient catalogue as CSV

    Returns:
        (csv text, number of records)
    """
    ingredients = db.query(Ingredient).order_by(Ingredient.name).all()

    ingredient_data = []
    for ingredient in ingredients:
        ingredient_data.append({
            "name": ingredient.name,
            "category": ingredient.category,
            "supplier": ingredient.supplier,
            "cost_per_unit": round_numeric_value(ingredient.cost_per_unit, 2),
            "unit": ingredient.unit,
            "dry_matter_percentage": round_numeric_value(ingredient.dry_matter_percentage, 2),
            "is_available": ingredient.is_available,
            "description": ingredient.description,
        })

    df = pd.DataFrame(ingredient_data, columns=INGREDIENT_EXPORT_COLUMNS)
    logger.info(f"Ingredients exported. Total records: {len(df)}")
    return df.to_csv(index=False), len(df)


def export_formulation_csv(db: Session, formulation_id) -> Tuple[str, str]:
    """
    Export one formulation's ingredient breakdown as CSV, with a totals row

    Returns:
        (csv text, formulation name)
    """
    formulation = get_formulation(db, formulation_id)

    df = pd.DataFrame(formulation["ingredients"], columns=FORMULATION_EXPORT_COLUMNS)
    if not df.empty:
        totals = {
            "display_order": "",
            "ingredient_name": "TOTAL",
            "quantity": df["quantity"].sum(),
            "percentage": df["percentage"].sum(),
            "proportion": df["proportion"].sum(),
            "cost_contribution": df["cost_contribution"].sum(),
            "cost_percentage": df["cost_percentage"].sum(),
        }
        df = pd.concat([df.astype({"display_order": object}), pd.DataFrame([totals])], ignore_index=True)

    for column in ("quantity", "percentage", "cost_contribution", "cost_percentage"):
        df[column] = df[column].apply(lambda value: round_numeric_value(value, 2) if pd.notna(value) else None)

    logger.info(f"Formulation {formulation['id']} exported with {len(formulation['ingredients'])} ingredient rows")
    return df.to_csv(index=False), formulation["name"]
