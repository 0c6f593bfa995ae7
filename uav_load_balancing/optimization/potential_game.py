"""Gibbs-sampling potential game for drone placement."""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..config import DeploymentRegion, PotentialGameConfig
from ..core.assignment import nearest_station_assignment
from ..core.base_station import drone_indices, station_positions
from ..core.fairness import AlphaFairnessModel, MAX_LOAD, objective_change, station_cost
from ..core.mobile_user import user_positions
from ..utils import SeedLike, boltzmann_probabilities, make_rng

if TYPE_CHECKING:
    from ..core.base_station import BaseStation
    from ..core.mobile_user import MobileUser

logger = logging.getLogger(__name__)

# 6-connected lattice moves (±x, ±y, ±h)
NEIGHBOR_OFFSETS = np.array([
    [1, 0, 0], [-1, 0, 0],
    [0, 1, 0], [0, -1, 0],
    [0, 0, 1], [0, 0, -1],
])


@dataclass(frozen=True)
class GameState:
    """
    Snapshot of the placement game.

    ``positions`` covers every station (ground stations unchanged);
    ``station_costs`` maps each drone id to its individual cost C_j;
    ``assignment`` is the nearest-station proxy association at ``positions``.
    """
    positions: np.ndarray
    potential: float
    station_costs: Dict[str, float]
    is_equilibrium: bool
    assignment: np.ndarray = field(default_factory=lambda: np.zeros(0, dtype=int))
    iterations: int = 0
    converged: bool = False
    potential_history: List[float] = field(default_factory=list)


class _Lattice:
    """Discretized deployment region addressed by integer (ix, iy, ih) indices."""

    def __init__(self, region: DeploymentRegion, config: PotentialGameConfig):
        self.axes = region.grid_axes(config.grid_step_x, config.grid_step_y, config.grid_step_h)
        self.shape = np.array([len(a) for a in self.axes])

    def snap(self, position: np.ndarray) -> np.ndarray:
        """Index of the lattice point closest to position, per axis."""
        return np.array([int(np.argmin(np.abs(axis - c))) for axis, c in zip(self.axes, position)])

    def point(self, index: np.ndarray) -> np.ndarray:
        return np.array([axis[k] for axis, k in zip(self.axes, index)], dtype=float)

    def neighbors(self, index: np.ndarray) -> List[np.ndarray]:
        result = []
        for offset in NEIGHBOR_OFFSETS:
            candidate = index + offset
            if np.all(candidate >= 0) and np.all(candidate < self.shape):
                result.append(candidate)
        return result


class PotentialGameSolver:
    """
    Drone positioning as an exact-potential game on a 3D lattice.

    Every drone is a player whose strategy set is its current lattice point
    and the 6-connected neighbours. The potential is Φ = Σ_j C_j over drones.

    Moving one drone shifts users between stations and so changes the other
    drones' costs too. Each player therefore pays its marginal contribution
    Φ(k, others) - Φ(without j), whose differences across j's candidates are
    exactly the differences of Φ. A drone samples its next point from
    Pr(k) ∝ exp(-ψ·Φ(k, others)); the term without j cancels in the
    normalisation. ψ grows by a fixed increment per round, moving from
    exploration to greedy best response, where Φ never increases.

    Candidate costs are pure functions of a positions array: nothing on the
    station objects is modified during the search.
    """

    def __init__(
        self,
        fairness: AlphaFairnessModel = None,
        config: PotentialGameConfig = None,
        region: DeploymentRegion = None
    ):
        self.fairness = fairness or AlphaFairnessModel()
        self.config = config or PotentialGameConfig()
        self.region = region or DeploymentRegion()
        self.lattice = _Lattice(self.region, self.config)

    def drone_cost(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray,
        station_index: int,
        candidate: np.ndarray = None
    ) -> float:
        """
        Individual cost of a drone at a candidate position.

        Users are mapped to their nearest station (a proxy association used
        only for scoring); the drone's cost is the α-fair station cost of its
        resulting load, +∞ once saturated.

        Args:
            users: Users in the snapshot
            stations: All stations
            positions: (num_stations, 3) positions of every station
            station_index: Index of the drone being evaluated
            candidate: Position to evaluate; defaults to positions[station_index]

        Returns:
            C_j for the candidate position
        """
        trial = np.array(positions, dtype=float)
        if candidate is not None:
            trial[station_index] = candidate
        if not users:
            return station_cost(0.0, self.fairness.policy)

        proxy = nearest_station_assignment(user_positions(list(users)), trial)
        served = [u for u, j in zip(users, proxy) if j == station_index]
        if not served:
            return station_cost(0.0, self.fairness.policy)
        demand = self.fairness.demand_matrix(
            served, [stations[station_index]], trial[station_index][np.newaxis, :]
        )
        load = min(MAX_LOAD, float(demand[:, 0].sum()))
        return station_cost(load, self.fairness.policy)

    def potential(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray
    ) -> Tuple[float, Dict[str, float]]:
        """Φ = Σ_j C_j over drones, with the per-drone costs."""
        costs = {
            stations[j].station_id: self.drone_cost(users, stations, positions, j)
            for j in drone_indices(stations)
        }
        return float(sum(costs.values())), costs

    def candidate_potential(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray,
        station_index: int,
        candidate: np.ndarray
    ) -> float:
        """Φ after moving one drone to ``candidate`` with every other station fixed."""
        trial = np.array(positions, dtype=float)
        trial[station_index] = candidate
        return self.potential(users, stations, trial)[0]

    def _candidate_indices(self, station: 'BaseStation', index: np.ndarray) -> List[np.ndarray]:
        """Current lattice point followed by neighbours respecting the drone's altitude bounds."""
        candidates = [index]
        for neighbor in self.lattice.neighbors(index):
            altitude = self.lattice.point(neighbor)[2]
            if station.min_altitude <= altitude <= station.max_altitude:
                candidates.append(neighbor)
        return candidates

    def is_nash_equilibrium(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray
    ) -> bool:
        """
        Check that no drone lowers its cost by moving to a neighbouring point.

        A drone's cost is its marginal contribution to Φ, so a unilateral
        deviation pays off exactly when it lowers Φ.

        Args:
            users: Users in the snapshot
            stations: All stations
            positions: (num_stations, 3) positions to verify

        Returns:
            True when no unilateral deviation improves by more than the tolerance
        """
        current, _ = self.potential(users, stations, positions)
        for j in drone_indices(stations):
            index = self.lattice.snap(positions[j])
            for neighbor in self._candidate_indices(stations[j], index)[1:]:
                phi = self.candidate_potential(users, stations, positions, j, self.lattice.point(neighbor))
                if phi < current - self.config.tolerance:
                    return False
        return True

    def solve(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        initial_positions: np.ndarray = None,
        seed: SeedLike = None
    ) -> GameState:
        """
        Run Gibbs-sampling best response until positions settle.

        Args:
            users: Users in the snapshot
            stations: All stations; only drones move
            initial_positions: Optional (num_stations, 3) starting positions;
                defaults to the stations' own. Drones are snapped to the lattice
            seed: Seed or Generator driving the Gibbs draws

        Returns:
            Final GameState with the potential history
        """
        if not stations:
            raise ValueError("Potential game needs at least one base station")
        cfg = self.config
        rng = make_rng(seed)

        positions = station_positions(stations) if initial_positions is None \
            else np.array(initial_positions, dtype=float)
        if positions.shape != (len(stations), 3):
            raise ValueError(f"initial_positions must have shape ({len(stations)}, 3), got {positions.shape}")
        drones = drone_indices(stations)
        indices = {j: self.lattice.snap(positions[j]) for j in drones}
        for j in drones:
            positions[j] = self.lattice.point(indices[j])

        phi, costs = self.potential(users, stations, positions)
        history = [phi]
        psi = cfg.initial_psi
        converged = not drones
        iterations = 0

        while not converged and iterations < cfg.max_iterations:
            iterations += 1
            changed = False
            for j in drones:
                candidates = self._candidate_indices(stations[j], indices[j])
                candidate_costs = [
                    self.candidate_potential(users, stations, positions, j, self.lattice.point(c))
                    for c in candidates
                ]
                probabilities = boltzmann_probabilities(candidate_costs, psi)
                if np.all(np.isnan(probabilities)):
                    # every candidate saturates; stay put
                    continue
                choice = int(rng.choice(len(candidates), p=probabilities))
                if choice != 0:
                    changed = True
                    indices[j] = candidates[choice]
                    positions[j] = self.lattice.point(indices[j])

            psi += cfg.psi_increment
            new_phi, costs = self.potential(users, stations, positions)
            history.append(new_phi)
            logger.debug("Potential game iteration %d: psi=%.3g potential=%.6g", iterations, psi, new_phi)

            if not changed or objective_change(phi, new_phi) < cfg.tolerance:
                converged = True
            phi = new_phi

        is_equilibrium = self.is_nash_equilibrium(users, stations, positions)
        logger.info(
            "Potential game finished: drones=%d iterations=%d converged=%s potential=%.6g equilibrium=%s",
            len(drones), iterations, converged, phi, is_equilibrium
        )
        return GameState(
            positions=positions,
            potential=phi,
            station_costs=costs,
            is_equilibrium=is_equilibrium,
            assignment=nearest_station_assignment(user_positions(list(users)), positions),
            iterations=iterations,
            converged=converged,
            potential_history=history
        )
