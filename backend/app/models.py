from pydantic import BaseModel, ConfigDict, Field, field_validator
from typing import List, Optional, Dict, Any
from sqlalchemy import Column, Integer, String, Numeric, Boolean, ForeignKey, Text, DateTime, JSON, UniqueConstraint, Uuid
from sqlalchemy.orm import declarative_base, relationship
from datetime import datetime
import uuid

from core.formulation.config import (
    FormulationStatus,
    FormulationType,
    IngredientRole,
    OptimizationObjective,
    UPDATABLE_STATUSES,
)

# Define the SQLAlchemy base
Base = declarative_base()


# ===================================================================
# CATALOGUE TABLES
# ===================================================================

class Animal(Base):
    __tablename__ = 'animals'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    species = Column(String(100), nullable=False)  # e.g. "Chicken", "Cattle"
    breed = Column(String(100), nullable=True)  # e.g. "Broiler", "Holstein"
    animal_type = Column(String(50), nullable=False)  # e.g. "Poultry", "Ruminant"
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    stages = relationship("ProductionStage", back_populates="animal", cascade="all, delete-orphan",
                          order_by="ProductionStage.start_age_days")


class ProductionStage(Base):
    __tablename__ = 'production_stages'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    animal_id = Column(Uuid(as_uuid=True), ForeignKey('animals.id', ondelete="CASCADE"), nullable=False)
    name = Column(String(100), nullable=False)  # e.g. "Starter", "Grower", "Lactation"
    display_name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    stage_type = Column(String(50), nullable=False)  # "Growth", "Production", "Maintenance"
    start_age_days = Column(Integer, nullable=True)
    end_age_days = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    animal = relationship("Animal", back_populates="stages")


class Ingredient(Base):
    __tablename__ = 'ingredients'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    name = Column(String(255), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    category = Column(String(100), nullable=True)  # e.g. "Energy Source", "Protein Source"
    supplier = Column(String(255), nullable=True)
    cost_per_unit = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    unit = Column(String(50), default="kg", nullable=False)
    dry_matter_percentage = Column(Numeric(5, 2, asdecimal=False), nullable=True)
    is_available = Column(Boolean, default=True, nullable=False)
    created_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


# ===================================================================
# FORMULATION TABLES
# ===================================================================

class Formulation(Base):
    __tablename__ = 'formulations'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)

    # Basic information
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    formulation_type = Column(String(50), nullable=False)  # "Optimal", "Least Cost", "Custom", "Template"
    status = Column(String(20), default=FormulationStatus.DRAFT.value, nullable=False)

    # Target animal and stage
    animal_id = Column(Uuid(as_uuid=True), ForeignKey('animals.id', ondelete="RESTRICT"), nullable=False)
    production_stage_id = Column(Uuid(as_uuid=True), ForeignKey('production_stages.id', ondelete="RESTRICT"), nullable=False)

    # Formulation parameters
    target_weight = Column(Numeric(8, 3, asdecimal=False), nullable=True)  # kg
    target_feed_intake = Column(Numeric(8, 3, asdecimal=False), nullable=True)  # kg/day
    formulation_quantity = Column(Numeric(10, 2, asdecimal=False), nullable=False)  # Total quantity formulated
    optimization_objective = Column(String(50), nullable=False)

    # Cost information
    total_cost = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    cost_per_unit = Column(Numeric(10, 2, asdecimal=False), nullable=False)
    cost_per_day = Column(Numeric(10, 2, asdecimal=False), nullable=True)

    # Nutritional analysis (opaque to the bookkeeping layer)
    nutritional_analysis = Column(JSON, nullable=False, default=dict)
    meets_requirements = Column(Boolean, nullable=False, default=False)

    # Ingredient composition (derived, rewritten with every ingredient change)
    ingredient_count = Column(Integer, nullable=False, default=0)
    main_ingredients = Column(JSON, nullable=True)  # Top 5 ingredients with percentages

    # Technical details
    dry_matter_basis = Column(Boolean, default=False, nullable=False)
    moisture_content = Column(Numeric(5, 2, asdecimal=False), nullable=True)

    # Sharing
    is_public = Column(Boolean, default=False, nullable=False)
    tags = Column(JSON, nullable=True)

    # Versioning
    version = Column(Integer, default=1, nullable=False)
    parent_formulation_id = Column(Uuid(as_uuid=True), ForeignKey('formulations.id', ondelete="SET NULL"), nullable=True)

    # Metadata
    created_by = Column(String(255), nullable=True)
    updated_by = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    animal = relationship("Animal")
    production_stage = relationship("ProductionStage")
    ingredients = relationship(
        "FormulationIngredient",
        back_populates="formulation",
        cascade="all, delete-orphan",
        order_by="FormulationIngredient.display_order",
    )


class FormulationIngredient(Base):
    __tablename__ = 'formulation_ingredients'
    __table_args__ = (
        UniqueConstraint('formulation_id', 'ingredient_id', name='formulation_ingredient_unique'),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4, nullable=False)
    formulation_id = Column(Uuid(as_uuid=True), ForeignKey('formulations.id', ondelete="CASCADE"), nullable=False)
    ingredient_id = Column(Uuid(as_uuid=True), ForeignKey('ingredients.id', ondelete="RESTRICT"), nullable=False)

    # Quantities and proportions
    quantity = Column(Numeric(12, 4, asdecimal=False), nullable=False)  # Amount in formulation unit
    percentage = Column(Numeric(5, 2, asdecimal=False), nullable=False)  # Share of total formulation mass
    proportion = Column(Numeric(8, 6, asdecimal=False), nullable=False)  # percentage / 100

    # Cost contribution
    cost_contribution = Column(Numeric(12, 2, asdecimal=False), nullable=False)
    cost_percentage = Column(Numeric(14, 2, asdecimal=False), nullable=False)  # Share of total formulation cost, can exceed 100

    ingredient_role = Column(String(50), nullable=False)
    is_essential = Column(Boolean, default=False, nullable=False)

    # Ordering (0-based position in the submitted ingredient list)
    sequence_order = Column(Integer, nullable=False)
    display_order = Column(Integer, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    formulation = relationship("Formulation", back_populates="ingredients")
    ingredient = relationship("Ingredient")


# ===================================================================
# REQUEST MODELS
# ===================================================================

class FormulationIngredientInput(BaseModel):
    ingredient_id: uuid.UUID = Field(..., description="Ingredient UUID")
    quantity: float = Field(..., gt=0, description="Amount in formulation unit")
    percentage: float = Field(..., ge=0, le=100, description="Share of total formulation mass (0-100)")
    ingredient_role: IngredientRole = Field(..., description="Primary, Secondary, Supplement, Filler or Additive")
    is_essential: bool = Field(False, description="Whether the ingredient is essential to the mix")

    model_config = ConfigDict(use_enum_values=True)


def _check_ingredient_list(ingredients):
    if ingredients is None:
        return ingredients
    if len(ingredients) == 0:
        raise ValueError('At least one ingredient is required')
    seen = set()
    for entry in ingredients:
        if entry.ingredient_id in seen:
            raise ValueError(f'Ingredient {entry.ingredient_id} is listed more than once')
        seen.add(entry.ingredient_id)
    return ingredients


class FormulationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    formulation_type: FormulationType = Field(..., description="Optimal, Least Cost, Custom or Template")
    animal_id: uuid.UUID
    production_stage_id: uuid.UUID
    target_weight: Optional[float] = Field(None, gt=0)
    target_feed_intake: Optional[float] = Field(None, gt=0)
    formulation_quantity: float = Field(..., gt=0, description="Total quantity formulated")
    optimization_objective: OptimizationObjective = OptimizationObjective.CUSTOM.value
    total_cost: float = Field(..., ge=0, description="Declared total cost of the formulated quantity")
    cost_per_unit: float = Field(..., ge=0)
    cost_per_day: Optional[float] = Field(None, ge=0)
    nutritional_analysis: Dict[str, Any] = Field(default_factory=dict)
    meets_requirements: bool = False
    dry_matter_basis: bool = False
    moisture_content: Optional[float] = Field(None, ge=0, le=100)
    is_public: bool = False
    tags: Optional[List[str]] = None
    parent_formulation_id: Optional[uuid.UUID] = None
    created_by: Optional[str] = Field(None, max_length=255)
    ingredients: List[FormulationIngredientInput]

    model_config = ConfigDict(use_enum_values=True)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate name is not empty after stripping"""
        v = v.strip()
        if not v:
            raise ValueError('Name cannot be empty')
        return v

    @field_validator('ingredients')
    @classmethod
    def validate_ingredients(cls, v):
        return _check_ingredient_list(v)


class FormulationUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    formulation_type: Optional[FormulationType] = None
    status: Optional[str] = Field(None, description="draft or archived; use the status endpoint to activate")
    animal_id: Optional[uuid.UUID] = None
    production_stage_id: Optional[uuid.UUID] = None
    target_weight: Optional[float] = Field(None, gt=0)
    target_feed_intake: Optional[float] = Field(None, gt=0)
    formulation_quantity: Optional[float] = Field(None, gt=0)
    optimization_objective: Optional[OptimizationObjective] = None
    total_cost: Optional[float] = Field(None, ge=0)
    cost_per_unit: Optional[float] = Field(None, ge=0)
    cost_per_day: Optional[float] = Field(None, ge=0)
    nutritional_analysis: Optional[Dict[str, Any]] = None
    meets_requirements: Optional[bool] = None
    dry_matter_basis: Optional[bool] = None
    moisture_content: Optional[float] = Field(None, ge=0, le=100)
    is_public: Optional[bool] = None
    tags: Optional[List[str]] = None
    updated_by: Optional[str] = Field(None, max_length=255)
    ingredients: Optional[List[FormulationIngredientInput]] = None
    expected_version: Optional[int] = Field(None, ge=1, description="Version the edit was based on")

    model_config = ConfigDict(use_enum_values=True)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError('Name cannot be empty')
        return v

    @field_validator('status')
    @classmethod
    def validate_status(cls, v):
        if v is None:
            return v
        if v not in UPDATABLE_STATUSES:
            raise ValueError(f"Status can only be changed to {', '.join(UPDATABLE_STATUSES)} here")
        return v

    @field_validator('ingredients')
    @classmethod
    def validate_ingredients(cls, v):
        return _check_ingredient_list(v)


class DuplicateFormulationRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255, description="Name of the copy")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        v = v.strip()
        if not v:
            raise ValueError('Name cannot be empty')
        return v


class FormulationStatusRequest(BaseModel):
    activate: bool = Field(..., description="True to activate, False to return to draft")




def _strip_name(value):
    if value is None:
        return value
    value = value.strip()
    if not value:
        raise ValueError('Name cannot be empty')
    return value


class IngredientCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    supplier: Optional[str] = Field(None, max_length=255)
    cost_per_unit: float = Field(..., gt=0)
    unit: str = Field("kg", max_length=50)
    dry_matter_percentage: Optional[float] = Field(None, ge=0, le=100)
    is_available: bool = True
    created_by: Optional[str] = Field(None, max_length=255)

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return _strip_name(v)


class IngredientUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    supplier: Optional[str] = Field(None, max_length=255)
    cost_per_unit: Optional[float] = Field(None, gt=0)
    unit: Optional[str] = Field(None, max_length=50)
    dry_matter_percentage: Optional[float] = Field(None, ge=0, le=100)
    is_available: Optional[bool] = None

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        return _strip_name(v)


class AnimalCreate(BaseModel):
    species: str = Field(..., min_length=1, max_length=100)
    breed: Optional[str] = Field(None, max_length=100)
    animal_type: str = Field(..., min_length=1, max_length=50)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None


class AnimalUpdate(BaseModel):
    species: Optional[str] = Field(None, min_length=1, max_length=100)
    breed: Optional[str] = Field(None, max_length=100)
    animal_type: Optional[str] = Field(None, min_length=1, max_length=50)
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class ProductionStageCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    stage_type: str = Field(..., min_length=1, max_length=50)
    description: Optional[str] = None
    start_age_days: Optional[int] = Field(None, ge=0)
    end_age_days: Optional[int] = Field(None, ge=0)


class ProductionStageUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    display_name: Optional[str] = Field(None, min_length=1, max_length=255)
    stage_type: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = None
    start_age_days: Optional[int] = Field(None, ge=0)
    end_age_days: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None
