"""
Configuration constants for formulation bookkeeping.

This module contains the global constants used by the formulation engine,
including:
- Ingredient mix tolerances
- Summary sizes
- Allowed values for the categorical formulation columns
- Feature flags read from the environment
"""

import os
from enum import Enum

# ===================================================================
# INGREDIENT MIX
# ===================================================================

PERCENTAGE_TARGET = 100.0
PERCENTAGE_TOLERANCE = 0.1          # absolute, in percentage points

MAIN_INGREDIENTS_LIMIT = 5          # top-N ingredients kept on the formulation row

# Caller-supplied total cost vs. the sum of live ingredient contributions.
# Divergence beyond this is logged, never reconciled.
COST_RECONCILIATION_TOLERANCE = 0.01

# Largest cost share the formulation_ingredients.cost_percentage column holds
MAX_COST_PERCENTAGE = 999_999_999_999.99

# ===================================================================
# PAGINATION
# ===================================================================

DEFAULT_PAGE = 1
DEFAULT_PAGE_LIMIT = 20
MAX_PAGE_LIMIT = 100

FORMULATION_SORT_FIELDS = ("name", "cost_per_unit", "total_cost", "created_at", "updated_at")
INGREDIENT_SORT_FIELDS = ("name", "category", "cost_per_unit", "created_at")

# ===================================================================
# CATEGORICAL VALUES
# ===================================================================


class FormulationType(str, Enum):
    OPTIMAL = "Optimal"
    LEAST_COST = "Least Cost"
    CUSTOM = "Custom"
    TEMPLATE = "Template"


class FormulationStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    ARCHIVED = "archived"
    TEMPLATE = "template"


class OptimizationObjective(str, Enum):
    COST = "cost"
    QUALITY = "quality"
    BALANCED = "balanced"
    CUSTOM = "custom"


class IngredientRole(str, Enum):
    PRIMARY = "Primary"
    SECONDARY = "Secondary"
    SUPPLEMENT = "Supplement"
    FILLER = "Filler"
    ADDITIVE = "Additive"


# Statuses an update may move a formulation into. Activation goes through
# the status toggle only.
UPDATABLE_STATUSES = (FormulationStatus.DRAFT.value, FormulationStatus.ARCHIVED.value)

# ===================================================================
# FEATURE FLAGS
# ===================================================================


def version_check_enabled() -> bool:
    """Whether updates must carry the formulation version they were based on."""
    return os.getenv("FORMULATION_VERSION_CHECK", "false").strip().lower() in ("1", "true", "yes", "on")
