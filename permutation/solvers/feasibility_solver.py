"""OR-Tools check that fixed per-area amounts can be met at all.

Before placing anything in a silo, this builds a small CP-SAT model: for each
item with partitioned restrictions, how many of its copies go to each area.
Copies must all land in areas the item allows, no fixed slot group gets more
than its amount, and no area receives more copies than it has room for.
If no such distribution exists, no shuffle can succeed, and the run can fail
early with a clear message instead of after the assignment passes.

The model only looks at partitioned restrictions, so a feasible result is a
necessary condition for success rather than a guarantee.

Example usage:
    solver = FeasibilitySolver(catalog, effective_location)
    if not solver.check(silo, restrictions):
        raise KeyItemPlacementError(...)
"""

from collections import defaultdict
from typing import Dict, List, Optional, Tuple
import logging as log

from ortools.sat.python import cp_model

from ..catalog import Catalog
from ..keys import ItemKey, LocationScope
from ..restrictions import PendingItem, PartitionedPlacement
from ..silos import SiloPermutation


class FeasibilitySolver:
    """Checks partitioned restrictions of a silo against area capacities."""

    def __init__(self, catalog: Catalog, effective_location: Optional[Dict[LocationScope, str]] = None,
                 seed: int = 0, time_limit_seconds: float = 10.0):
        self.catalog = catalog
        self.effective_location = effective_location or {}
        self.seed = seed
        self.time_limit_seconds = time_limit_seconds

    def area_capacity(self, silo: SiloPermutation) -> Dict[str, int]:
        """Total number of occupants each area (or event) of the silo can hold."""
        capacity: Dict[str, int] = defaultdict(int)
        for target in silo.TargetSlots(self.catalog):
            location = self.catalog.Location(target)
            annotation = self.catalog.Slot(location.loc_scope)
            area = self.effective_location.get(location.loc_scope, annotation.area)
            capacity[area] += location.max_slots
            if annotation.event is not None:
                capacity[annotation.event] += location.max_slots
        return dict(capacity)

    def check(self, silo: SiloPermutation, restrictions: Dict[ItemKey, PendingItem]) -> bool:
        """Whether every partitioned restriction of the silo can be satisfied.

        Args:
            silo: Silo whose targets provide the capacity
            restrictions: Restrictions built for the silo

        Returns:
            False if the model is infeasible, True otherwise (including when
            the solver gives up without an answer)
        """
        partitioned: List[Tuple[ItemKey, PendingItem]] = []
        seen = set()
        for item, pending in sorted(restrictions.items()):
            # Aliased items share one restriction. Items without copies in this silo place nothing.
            if (isinstance(pending.placement, PartitionedPlacement) and pending.total_amount > 0
                    and id(pending) not in seen):
                seen.add(id(pending))
                partitioned.append((item, pending))
        if not partitioned:
            return True

        capacity = self.area_capacity(silo)
        model = cp_model.CpModel()
        area_usage: Dict[str, list] = defaultdict(list)
        for item, pending in partitioned:
            placement = pending.placement
            super_root = placement.partitions[0]
            areas = set(super_root.all_areas)
            if super_root.any_area:
                areas.update(capacity)
            copies = {
                area: model.NewIntVar(0, capacity.get(area, 0), f"{item}_{area}")
                for area in sorted(areas)
            }
            for area, var in copies.items():
                area_usage[area].append(var)
            # Fixed amounts are caps, a silo may hold fewer copies than configured
            model.Add(sum(copies.values()) == pending.total_amount)
            for slot in placement.slots:
                if slot.is_infinite:
                    continue
                model.Add(sum(copies[area] for area in slot.allowed_locations) <= slot.amount)

        for area, usage in area_usage.items():
            model.Add(sum(usage) <= capacity.get(area, 0))

        solver = cp_model.CpSolver()
        solver.parameters.max_time_in_seconds = self.time_limit_seconds
        solver.parameters.random_seed = self.seed
        # Single worker keeps the search deterministic
        solver.parameters.num_search_workers = 1
        status = solver.Solve(model)

        if status in (cp_model.OPTIMAL, cp_model.FEASIBLE):
            log.debug(f"{silo.type.name}: {len(partitioned)} partitioned restrictions are feasible")
            return True
        if status == cp_model.INFEASIBLE:
            log.error(f"{silo.type.name}: fixed area amounts can't be met by the available targets")
            return False
        log.warning(f"{silo.type.name}: feasibility check ended with status {solver.StatusName(status)}")
        return True
