"""
Cost allocation for formulation ingredients.

Each ingredient's absolute contribution is its live unit cost times the
quantity used; its cost share is that contribution over the formulation's
declared total cost. The declared total is authoritative for the share
calculation and is never reconciled against the contributions.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from middleware.logging_config import get_logger

from .validation import entry_value

logger = get_logger("formulation.cost_allocation")

UnitCostResolver = Callable[[List[Any]], Mapping[Any, Optional[float]]]


@dataclass
class CostAllocation:
    ingredient_id: Any
    quantity: float
    unit_cost: float
    cost_contribution: float
    cost_percentage: float
    cost_resolved: bool = True


@dataclass
class AllocationResult:
    allocations: List[CostAllocation]
    total_cost: float
    unresolved_ids: List[Any] = field(default_factory=list)

    @property
    def computed_total_cost(self) -> float:
        return sum(a.cost_contribution for a in self.allocations)

    def __iter__(self):
        return iter(self.allocations)

    def __len__(self):
        return len(self.allocations)

    def __getitem__(self, index):
        return self.allocations[index]


def distinct_ingredient_ids(entries: Iterable[Any]) -> List[Any]:
    """Ingredient ids in first-seen order, without repeats."""
    seen = set()
    ordered = []
    for entry in entries:
        ingredient_id = entry_value(entry, "ingredient_id")
        if ingredient_id not in seen:
            seen.add(ingredient_id)
            ordered.append(ingredient_id)
    return ordered


def cost_share(contribution: float, total_cost: float) -> float:
    """Percentage of ``total_cost`` taken by ``contribution``; 0 when there is no total."""
    if total_cost <= 0:
        return 0.0
    return contribution / total_cost * 100


def allocate_costs(entries: Sequence[Any], resolve_unit_costs: UnitCostResolver,
                   total_cost: float) -> AllocationResult:
    """
    Compute per-ingredient cost contribution and cost share.

    Args:
        entries: Ingredient entries with ``ingredient_id`` and ``quantity``
        resolve_unit_costs: Batch lookup, called once with the distinct ids,
            returning ``{ingredient_id: unit_cost}``
        total_cost: Declared formulation total cost

    Returns:
        AllocationResult: One allocation per entry, in input order
    """
    total_cost = float(total_cost or 0)
    ids = distinct_ingredient_ids(entries)
    unit_costs: Dict[Any, Optional[float]] = dict(resolve_unit_costs(ids)) if ids else {}

    unresolved = []
    allocations = []
    for entry in entries:
        ingredient_id = entry_value(entry, "ingredient_id")
        quantity = float(entry_value(entry, "quantity", 0) or 0)
        unit_cost = unit_costs.get(ingredient_id)

        resolved = unit_cost is not None
        if not resolved:
            # Missing cost data is costed at zero rather than failing the write.
            if ingredient_id not in unresolved:
                unresolved.append(ingredient_id)
                logger.warning(
                    f"Unit cost unavailable for ingredient {ingredient_id}; "
                    f"allocating zero cost (data quality issue)"
                )
            unit_cost = 0.0

        contribution = float(unit_cost) * quantity
        allocations.append(CostAllocation(
            ingredient_id=ingredient_id,
            quantity=quantity,
            unit_cost=float(unit_cost),
            cost_contribution=contribution,
            cost_percentage=cost_share(contribution, total_cost),
            cost_resolved=resolved,
        ))

    return AllocationResult(allocations=allocations, total_cost=total_cost, unresolved_ids=unresolved)
