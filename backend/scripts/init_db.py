#!/usr/bin/env python3
"""
Database Initialisation Script
Creates the formulation tables using the existing connection settings and
optionally loads a small starter catalogue.

Usage:
    python -m scripts.init_db [--seed]
"""

import argparse
import sys

from sqlalchemy.exc import SQLAlchemyError

from app.dependencies import SQLALCHEMY_DATABASE_URL, SessionLocal, engine, run_atomic
from app.models import Animal, Base, Ingredient, ProductionStage

SEED_INGREDIENTS = [
    {"name": "Maize Grain", "category": "Energy Source", "cost_per_unit": 0.32, "dry_matter_percentage": 88.0},
    {"name": "Soybean Meal", "category": "Protein Source", "cost_per_unit": 0.55, "dry_matter_percentage": 89.0},
    {"name": "Wheat Bran", "category": "Energy Source", "cost_per_unit": 0.21, "dry_matter_percentage": 87.0},
    {"name": "Limestone", "category": "Mineral", "cost_per_unit": 0.08, "dry_matter_percentage": 99.0},
    {"name": "Vitamin Premix", "category": "Additive", "cost_per_unit": 2.40, "dry_matter_percentage": 95.0},
]

SEED_ANIMALS = [
    {
        "animal": {"species": "Chicken", "breed": "Broiler", "animal_type": "Poultry", "display_name": "Broiler Chicken"},
        "stages": [
            {"name": "Starter", "display_name": "Broiler Starter", "stage_type": "Growth", "start_age_days": 0, "end_age_days": 10},
            {"name": "Grower", "display_name": "Broiler Grower", "stage_type": "Growth", "start_age_days": 11, "end_age_days": 24},
            {"name": "Finisher", "display_name": "Broiler Finisher", "stage_type": "Growth", "start_age_days": 25, "end_age_days": 42},
        ],
    },
    {
        "animal": {"species": "Cattle", "breed": "Holstein", "animal_type": "Ruminant", "display_name": "Dairy Cow"},
        "stages": [
            {"name": "Lactation", "display_name": "Early Lactation", "stage_type": "Production"},
            {"name": "Dry", "display_name": "Dry Period", "stage_type": "Maintenance"},
        ],
    },
]


def create_tables():
    """Create any missing tables."""
    print("🚀 Creating tables...")
    Base.metadata.create_all(bind=engine)
    for table in Base.metadata.sorted_tables:
        print(f"   📝 {table.name}")
    print("✅ Tables ready")


def seed_catalogue():
    """Insert the starter ingredients and animals that are not already present."""
    db = SessionLocal()
    try:
        existing_ingredients = {name for (name,) in db.query(Ingredient.name).all()}
        existing_animals = {name for (name,) in db.query(Animal.display_name).all()}

        with run_atomic(db):
            added_ingredients = 0
            for data in SEED_INGREDIENTS:
                if data["name"] in existing_ingredients:
                    continue
                db.add(Ingredient(**data, created_by="init_db"))
                added_ingredients += 1

            added_animals = 0
            for entry in SEED_ANIMALS:
                if entry["animal"]["display_name"] in existing_animals:
                    continue
                animal = Animal(**entry["animal"])
                animal.stages = [ProductionStage(**stage) for stage in entry["stages"]]
                db.add(animal)
                added_animals += 1

        print(f"✅ Seeded {added_ingredients} ingredients and {added_animals} animals")
    finally:
        db.close()


def main():
    parser = argparse.ArgumentParser(description="Create the formulation database tables")
    parser.add_argument("--seed", action="store_true", help="Load a starter ingredient and animal catalogue")
    args = parser.parse_args()

    print("🗃️  Feed Formulation Records - Database Initialisation")
    print("=" * 50)
    database_url = SQLALCHEMY_DATABASE_URL
    print(f"📡 Database: {database_url.split('@')[1] if '@' in database_url else database_url.split('://')[0]}")

    try:
        create_tables()
        if args.seed:
            seed_catalogue()
    except SQLAlchemyError as e:
        print(f"❌ Database error: {e}")
        sys.exit(1)

    print("🎉 Done")


if __name__ == "__main__":
    main()
