"""
Shared fixtures: an in-memory SQLite database, a FastAPI test client bound to
it, and a small catalogue (one animal and stage, corn and soy ingredients)
"""
import os
import tempfile

# Must be set before the app modules build their engine and log handlers
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOG_DIR"] = tempfile.mkdtemp(prefix="formulation-logs-")
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["FORMULATION_VERSION_CHECK"] = "false"
os.environ["ENVIRONMENT"] = "test"

import pytest
from fastapi.testclient import TestClient

from app.dependencies import SessionLocal, engine, get_db
from app.main import app
from app.models import Animal, Base, Ingredient, ProductionStage


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def animal(db):
    animal = Animal(species="Chicken", breed="Broiler", animal_type="Poultry", display_name="Broiler Chicken")
    db.add(animal)
    db.commit()
    return animal


@pytest.fixture
def stage(db, animal):
    stage = ProductionStage(
        animal_id=animal.id, name="Starter", display_name="Broiler Starter",
        stage_type="Growth", start_age_days=0, end_age_days=10,
    )
    db.add(stage)
    db.commit()
    return stage


def add_ingredient(db, name, cost_per_unit, category="Energy Source"):
    ingredient = Ingredient(name=name, cost_per_unit=cost_per_unit, category=category)
    db.add(ingredient)
    db.commit()
    return ingredient


@pytest.fixture
def corn(db):
    return add_ingredient(db, "Maize Grain", 1.0)


@pytest.fixture
def soy(db):
    return add_ingredient(db, "Soybean Meal", 1.5, category="Protein Source")


def ingredient_entry(ingredient, quantity, percentage, role="Primary", is_essential=False):
    return {
        "ingredient_id": str(ingredient.id),
        "quantity": quantity,
        "percentage": percentage,
        "ingredient_role": role,
        "is_essential": is_essential,
    }


def formulation_payload(animal, stage, ingredients, name="Broiler Starter", total_cost=100.0, **overrides):
    payload = {
        "name": name,
        "description": "Starter ration",
        "formulation_type": "Custom",
        "animal_id": str(animal.id),
        "production_stage_id": str(stage.id),
        "formulation_quantity": 100.0,
        "optimization_objective": "cost",
        "total_cost": total_cost,
        "cost_per_unit": total_cost / 100.0,
        "nutritional_analysis": {"crude_protein": 21.5},
        "meets_requirements": True,
        "tags": ["broiler", "starter"],
        "created_by": "tester",
        "ingredients": ingredients,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def corn_soy_payload(animal, stage, corn, soy):
    """60 kg corn at 1.0 and 40 kg soy at 1.5, declared total 100"""
    return formulation_payload(animal, stage, [
        ingredient_entry(corn, 60, 60),
        ingredient_entry(soy, 40, 40, role="Secondary"),
    ])
