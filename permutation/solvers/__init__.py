"""Solvers placing the sources of a silo.

- AssignmentEngine: weighted sweep with restricted retries and fallback
- FeasibilitySolver: OR-Tools CP-SAT precheck of fixed per-area amounts
"""

from .assignment_engine import AssignmentEngine, KeyItemPlacementError, RestrictedItemQueue, SiloCapacityError
from .feasibility_solver import FeasibilitySolver

__all__ = [
    "AssignmentEngine",
    "FeasibilitySolver",
    "KeyItemPlacementError",
    "RestrictedItemQueue",
    "SiloCapacityError",
]
