"""
Bulk ingredient import from CSV or Excel uploads

Rows are checked one by one; a row that fails is reported with its sheet
row number and the rest of the file is still imported. All accepted rows
are written in one transaction.
"""

import io
from typing import Any, Dict, List, Tuple

import pandas as pd
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.dependencies import run_atomic
from app.models import Ingredient, IngredientCreate
from core.formulation.exceptions import ValidationFailed
from core.formulation.validation import field_errors_from_pydantic
from middleware.logging_config import get_logger, log_database_operation
from services.catalog_utils import find_ingredient_by_name
from services.export_service import INGREDIENT_EXPORT_COLUMNS

logger = get_logger("import_service")

MAX_IMPORT_FILE_SIZE = 5 * 1024 * 1024  # 5MB
REQUIRED_IMPORT_COLUMNS = ["name", "cost_per_unit"]
CSV_EXTENSIONS = (".csv",)
EXCEL_EXTENSIONS = (".xlsx",)

IMPORT_TEMPLATE_ROW = {
    "name": "Sample Ingredient",
    "category": "Energy Source",
    "supplier": "Sample Supplier",
    "cost_per_unit": 2.50,
    "unit": "kg",
    "dry_matter_percentage": 88.0,
    "is_available": True,
    "description": "This is a sample ingredient description",
}


def import_template_csv() -> str:
    """Header row plus one example row, in export column order"""
    df = pd.DataFrame([IMPORT_TEMPLATE_ROW], columns=INGREDIENT_EXPORT_COLUMNS)
    return df.to_csv(index=False)


def read_import_file(filename: str, content: bytes) -> pd.DataFrame:
    """
    Load an uploaded sheet into a DataFrame of strings

    Args:
        filename: Original upload name; the extension picks the reader
        content: Raw file bytes

    Raises:
        ValidationFailed: Keyed by ``file`` for size, type, parse and
            missing-column problems
    """
    if len(content) > MAX_IMPORT_FILE_SIZE:
        raise ValidationFailed({"file": [f"File exceeds the {MAX_IMPORT_FILE_SIZE // (1024 * 1024)}MB limit"]})

    lowered = (filename or "").lower()
    try:
        if lowered.endswith(CSV_EXTENSIONS):
            df = pd.read_csv(io.BytesIO(content), dtype=str)
        elif lowered.endswith(EXCEL_EXTENSIONS):
            df = pd.read_excel(io.BytesIO(content), dtype=str)
        else:
            raise ValidationFailed({"file": ["File must be CSV (.csv) or Excel (.xlsx)"]})
    except (ValueError, pd.errors.ParserError) as e:
        logger.warning(f"Unreadable import file '{filename}': {str(e)}")
        raise ValidationFailed({"file": ["File could not be read"]})

    df.columns = [str(column).strip().lower() for column in df.columns]
    missing_columns = [column for column in REQUIRED_IMPORT_COLUMNS if column not in df.columns]
    if missing_columns:
        raise ValidationFailed({"file": [f"Missing required columns: {', '.join(missing_columns)}"]})
    return df


def _row_payload(row: pd.Series) -> Dict[str, Any]:
    payload = {}
    for column in INGREDIENT_EXPORT_COLUMNS:
        if column not in row.index or pd.isna(row[column]):
            continue
        value = str(row[column]).strip()
        if value:
            payload[column] = value
    return payload


def validate_import_rows(df: pd.DataFrame) -> Tuple[List[Tuple[int, IngredientCreate]], List[Dict[str, Any]]]:
    """
    Check every row against the ingredient rules

    Names repeated within the file are rejected after their first row.

    Returns:
        (accepted ``(row number, IngredientCreate)`` pairs, row errors)
    """
    accepted = []
    errors = []
    seen_names = set()

    for index, row in df.iterrows():
        row_number = index + 2  # 1-based plus the header row
        payload = _row_payload(row)
        try:
            data = IngredientCreate.model_validate(payload)
        except ValidationError as exc:
            errors.append({
                "row": row_number,
                "name": payload.get("name"),
                "errors": field_errors_from_pydantic(exc.errors()),
            })
            continue

        key = data.name.lower()
        if key in seen_names:
            errors.append({"row": row_number, "name": data.name, "errors": {"name": ["Duplicate name in file"]}})
            continue
        seen_names.add(key)
        accepted.append((row_number, data))

    return accepted, errors


def import_ingredients(db: Session, df: pd.DataFrame, update_existing: bool = False, dry_run: bool = False) -> Dict[str, Any]:
    """
    Import ingredient rows

    Args:
        db: Database session
        df: Sheet as returned by ``read_import_file``
        update_existing: Overwrite ingredients whose name already exists
            (case-insensitive); otherwise they are skipped
        dry_run: Validate only, write nothing

    Returns:
        Counts of created, updated, skipped and failed rows, plus row errors
    """
    accepted, errors = validate_import_rows(df)
    summary = {
        "total_rows": len(df),
        "valid_rows": len(accepted),
        "created": 0,
        "updated": 0,
        "skipped": 0,
        "failed": len(errors),
        "errors": errors,
        "dry_run": dry_run,
    }
    if dry_run or not accepted:
        return summary

    with run_atomic(db):
        for _, data in accepted:
            existing = find_ingredient_by_name(db, data.name)
            if existing is None:
                db.add(Ingredient(**data.model_dump()))
                summary["created"] += 1
            elif update_existing:
                for field, value in data.model_dump(exclude_unset=True, exclude={"created_by"}).items():
                    setattr(existing, field, value)
                summary["updated"] += 1
            else:
                summary["skipped"] += 1

    log_database_operation(
        logger, "IMPORT", "ingredients", summary["created"] + summary["updated"],
        created=summary["created"], updated=summary["updated"], skipped=summary["skipped"], failed=summary["failed"],
    )
    return summary
