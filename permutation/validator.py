from collections import Counter
from typing import Dict, List
import logging as log

from .catalog import Catalog
from .keys import ScopeType, SlotKey
from .permutation import PermutationResult
from .silos import RandomSilo


class PermutationValidator(object):
    """Checks a finished permutation for broken mappings."""

    def __init__(self, catalog: Catalog, result: PermutationResult) -> None:
        self.catalog = catalog
        self.result = result

    def Validate(self) -> List[str]:
        """Return a description of every problem found, empty if the result is sound."""
        problems: List[str] = []
        problems.extend(self.CheckCapacity())
        problems.extend(self.CheckSelfMappings())
        problems.extend(self.CheckSourcesPlacedOnce())
        for problem in problems:
            log.warning(problem)
        return problems

    def CheckCapacity(self) -> List[str]:
        problems = []
        for silo_type, silo in self.result.silos.items():
            for target, sources in silo.mapping.items():
                if target not in self.catalog.slot_locations:
                    problems.append(f"{silo_type.name}: target {target} has no catalog data")
                    continue
                max_slots = self.catalog.Location(target).max_slots
                if len(sources) > max_slots:
                    problems.append(f"{silo_type.name}: {target} has {len(sources)} sources, limit {max_slots}")
        return problems

    def CheckSelfMappings(self) -> List[str]:
        problems = []
        for silo_type in (RandomSilo.SELF, RandomSilo.REMOVE):
            for target, sources in self.result.silos[silo_type].mapping.items():
                if sources != [target]:
                    problems.append(f"{silo_type.name}: {target} is mapped to {sources}")
        return problems

    def CheckSourcesPlacedOnce(self) -> List[str]:
        """Every real source is placed at most once, and only in one silo."""
        problems = []
        placements: Dict[SlotKey, List[RandomSilo]] = {}
        for silo_type, silo in self.result.silos.items():
            counts = Counter(silo.PlacedSources())
            for source, count in counts.items():
                # Generated filler items can be placed any number of times
                if source.scope.type == ScopeType.SPECIAL and source not in self.catalog.slot_locations:
                    continue
                if count > 1:
                    problems.append(f"{silo_type.name}: {source} placed {count} times")
                placements.setdefault(source, []).append(silo_type)
        for source, silo_types in placements.items():
            if len(silo_types) > 1:
                names = ",".join(silo_type.name for silo_type in silo_types)
                problems.append(f"{source} placed in several silos: {names}")
        return problems
