"""Air-ground collaborative traffic load balancing (AGC-TLB).

Joint user association and drone positioning by alternating optimization:
P-SCA updates associations for fixed positions, the potential game updates
drone positions for the new associations, and the loop stops once the
α-fair objective settles. Constraint families are checked on the final
state and reported, never repaired.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, TYPE_CHECKING

import numpy as np

from ..config import AGCTLBConfig
from ..core.assignment import UNASSIGNED, first_fit_assignment, station_counts, to_id_mapping
from ..core.base_station import capacities, drone_indices, station_positions
from ..core.channel import RateEvaluator
from ..core.fairness import AlphaFairnessModel, objective_change
from ..utils import SeedLike, make_rng
from .potential_game import PotentialGameSolver
from .psca import PSCASolver

if TYPE_CHECKING:
    from ..core.base_station import BaseStation
    from ..core.mobile_user import MobileUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConstraintViolations:
    """Violations grouped by constraint family."""
    assignment: List[str] = field(default_factory=list)
    capacity: List[str] = field(default_factory=list)
    load: List[str] = field(default_factory=list)
    deployment: List[str] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.assignment) + len(self.capacity) + len(self.load) + len(self.deployment)

    def is_empty(self) -> bool:
        return self.count == 0

    def as_dict(self) -> Dict[str, List[str]]:
        return {
            'assignment': list(self.assignment),
            'capacity': list(self.capacity),
            'load': list(self.load),
            'deployment': list(self.deployment),
        }


@dataclass(frozen=True)
class Solution:
    """Final AGC-TLB state: positions, association, loads and feasibility."""
    positions: np.ndarray
    assignment: np.ndarray
    loads: np.ndarray
    objective: float
    violations: ConstraintViolations
    iterations: int
    converged: bool
    objective_history: List[float] = field(default_factory=list)

    @property
    def feasible(self) -> bool:
        return self.violations.is_empty()

    def metrics(self) -> Dict[str, float]:
        """Summary numbers for reporting."""
        loads = self.loads if self.loads.size else np.zeros(1)
        return {
            'objective': self.objective,
            'feasible': self.feasible,
            'violations': self.violations.count,
            'max_load': float(np.max(loads)),
            'avg_load': float(np.mean(loads)),
            'min_load': float(np.min(loads)),
            'load_variance': float(np.var(loads)),
            'iterations': self.iterations,
        }

    def infeasibility_report(self) -> str:
        if self.feasible:
            return "Solution is feasible"
        lines = [f"Solution violates {self.violations.count} constraint(s)"]
        for family, items in self.violations.as_dict().items():
            if items:
                lines.append(f"  {family}:")
                lines.extend(f"    - {item}" for item in items)
        return "\n".join(lines)

    def assignment_by_id(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation']
    ) -> Dict[str, List[str]]:
        return to_id_mapping(self.assignment, users, stations)


class AGCTLBCoordinator:
    """
    Alternating P-SCA / potential-game optimization.

    Drones start on uniformly random lattice points of the deployment region
    and users start from a capacity-respecting first-fit association.
    """

    def __init__(self, config: AGCTLBConfig = None, rate_evaluator: RateEvaluator = None):
        """
        Args:
            config: Region, policy, tolerances and the nested solver blocks
            rate_evaluator: Rate model shared by both subproblems
        """
        self.config = config or AGCTLBConfig()
        self.fairness = AlphaFairnessModel(rate_evaluator, self.config.policy, self.config.mean_packet_size)
        self.psca = PSCASolver(self.fairness, self.config.psca)
        self.game = PotentialGameSolver(self.fairness, self.config.game, self.config.region)

    def initial_positions(self, stations: Sequence['BaseStation'], seed: SeedLike = None) -> np.ndarray:
        """Station positions with every drone moved to a random lattice point."""
        rng = make_rng(seed)
        game_cfg = self.config.game
        grid = self.config.region.grid_points(game_cfg.grid_step_x, game_cfg.grid_step_y, game_cfg.grid_step_h)
        positions = station_positions(stations)
        for j in drone_indices(stations):
            drone = stations[j]
            allowed = grid[(grid[:, 2] >= drone.min_altitude) & (grid[:, 2] <= drone.max_altitude)]
            if len(allowed) == 0:
                raise ValueError(
                    f"No lattice point within altitude bounds [{drone.min_altitude}, {drone.max_altitude}] "
                    f"of {drone.station_id}"
                )
            positions[j] = allowed[rng.integers(len(allowed))]
        return positions

    def solve(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        initial_positions: np.ndarray = None,
        seed: SeedLike = None
    ) -> Solution:
        """
        Jointly optimize associations and drone positions.

        Args:
            users: Users to serve
            stations: Drone and ground stations
            initial_positions: Optional (num_stations, 3) starting positions;
                drones are placed at random lattice points when omitted
            seed: Seed or Generator for initial placement and Gibbs draws

        Returns:
            Solution with the violation lists of the final state
        """
        if not stations:
            raise ValueError("AGC-TLB needs at least one base station")
        cfg = self.config
        rng = make_rng(seed)

        if initial_positions is None:
            positions = self.initial_positions(stations, rng)
        else:
            positions = np.array(initial_positions, dtype=float)
        assignment = first_fit_assignment(len(users), capacities(stations))
        objective = self.fairness.evaluate(assignment, users, stations, positions).objective
        history = [objective]
        converged = False
        iterations = 0

        logger.info(
            "AGC-TLB started: users=%d stations=%d drones=%d policy=%s",
            len(users), len(stations), len(drone_indices(stations)), cfg.policy.name
        )
        while not converged and iterations < cfg.max_outer_iterations:
            iterations += 1
            association = self.psca.solve(users, stations, positions, initial_assignment=assignment)
            assignment = association.binary
            state = self.game.solve(users, stations, positions, seed=rng)
            positions = state.positions

            current = self.fairness.evaluate(assignment, users, stations, positions).objective
            history.append(current)
            logger.debug("AGC-TLB iteration %d: objective=%.6g potential=%.6g", iterations, current, state.potential)
            if objective_change(objective, current) < cfg.tolerance:
                converged = True
            objective = current

        result = self.fairness.evaluate(assignment, users, stations, positions)
        violations = self.check_constraints(assignment, result.loads, stations, positions)
        logger.info(
            "AGC-TLB finished: iterations=%d converged=%s objective=%.6g violations=%d",
            iterations, converged, result.objective, violations.count
        )
        return Solution(
            positions=positions,
            assignment=assignment,
            loads=result.loads,
            objective=result.objective,
            violations=violations,
            iterations=iterations,
            converged=converged,
            objective_history=history
        )

    def check_constraints(
        self,
        assignment: np.ndarray,
        loads: np.ndarray,
        stations: Sequence['BaseStation'],
        positions: np.ndarray
    ) -> ConstraintViolations:
        """
        Validate the assignment, capacity, load and deployment families.

        Args:
            assignment: Binary association (station index per user)
            loads: Per-station loads
            stations: All stations
            positions: (num_stations, 3) positions

        Returns:
            ConstraintViolations; empty lists mean the family holds
        """
        assignment = np.asarray(assignment, dtype=int)
        num_stations = len(stations)
        assignment_issues, capacity_issues, load_issues, deployment_issues = [], [], [], []

        for i, j in enumerate(assignment):
            if j == UNASSIGNED:
                assignment_issues.append(f"user {i} is not assigned")
            elif not 0 <= j < num_stations:
                assignment_issues.append(f"user {i} assigned to unknown station {j}")

        valid = assignment[(assignment >= 0) & (assignment < num_stations)]
        counts = station_counts(valid, num_stations)
        for station, count in zip(stations, counts):
            if count > station.max_user_capacity:
                capacity_issues.append(
                    f"{station.station_id}: {count} users exceed capacity {station.max_user_capacity}"
                )

        for station, load in zip(stations, loads):
            if not 0.0 <= load <= self.config.max_load or math.isnan(load):
                load_issues.append(
                    f"{station.station_id}: load {load:.4f} outside [0, {self.config.max_load}]"
                )

        region = self.config.region
        for j in drone_indices(stations):
            if not region.contains(positions[j]):
                deployment_issues.append(
                    f"{stations[j].station_id}: position {positions[j]} outside deployment region"
                )
        return ConstraintViolations(assignment_issues, capacity_issues, load_issues, deployment_issues)
