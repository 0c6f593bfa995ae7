"""Leader-follower (Stackelberg) load balancing."""

import itertools
import logging
from dataclasses import dataclass, field
from typing import List, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..config import DeploymentRegion, StackelbergConfig
from ..core.base_station import drone_indices, station_positions
from ..core.channel import RateEvaluator
from ..core.fairness import AlphaFairnessModel, objective_change
from .psca import PSCAResult, PSCASolver

if TYPE_CHECKING:
    from ..core.base_station import BaseStation, DroneBaseStation
    from ..core.mobile_user import MobileUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StackelbergResult:
    positions: np.ndarray
    association: PSCAResult
    rounds: int
    converged: bool
    objective_history: List[float] = field(default_factory=list)

    @property
    def assignment(self) -> np.ndarray:
        return self.association.binary

    @property
    def loads(self) -> np.ndarray:
        return self.association.loads

    @property
    def objective(self) -> float:
        return self.association.objective


def coverage_score(drone: 'BaseStation', position: np.ndarray, user_pos: np.ndarray) -> float:
    """
    Mean of max(0, 1 - d/R) over the given users.

    Args:
        drone: Station providing the coverage radius R
        position: Candidate station position
        user_pos: (N, 3) positions of the station's users

    Returns:
        Coverage in [0, 1]; 0 when no users are given
    """
    if len(user_pos) == 0:
        return 0.0
    distances = np.linalg.norm(user_pos - position, axis=1)
    return float(np.mean(np.maximum(0.0, 1.0 - distances / drone.coverage_radius)))


class StackelbergSolver:
    """
    Ground network leads, drones follow.

    Each round the leader associates users with P-SCA under latency-optimal
    fairness, then every drone runs a one-step local search around its
    position to improve coverage of the users it was given. A final P-SCA
    run on the optimized positions produces the returned association.
    """

    def __init__(
        self,
        config: StackelbergConfig = None,
        region: DeploymentRegion = None,
        rate_evaluator: RateEvaluator = None
    ):
        self.config = config or StackelbergConfig()
        self.region = region or DeploymentRegion()
        self.fairness = AlphaFairnessModel(rate_evaluator, self.config.policy, self.config.mean_packet_size)
        self.psca = PSCASolver(self.fairness, self.config.psca)

    def _search_offsets(self) -> np.ndarray:
        step, alt = self.config.search_step, self.config.altitude_step
        return np.array(list(itertools.product((-step, 0.0, step), (-step, 0.0, step), (-alt, 0.0, alt))))

    def follower_move(
        self,
        drone: 'DroneBaseStation',
        position: np.ndarray,
        user_pos: np.ndarray
    ) -> Tuple[np.ndarray, bool]:
        """
        Best coverage position among the local grid around ``position``.

        Candidates are clipped to the deployment region and the drone's
        altitude bounds. The position only changes on a strict improvement.

        Returns:
            (new position, whether it moved)
        """
        best_pos = np.array(position, dtype=float)
        best_score = coverage_score(drone, best_pos, user_pos)
        moved = False
        for offset in self._search_offsets():
            candidate = drone.clip_altitude(self.region.clip(position + offset))
            score = coverage_score(drone, candidate, user_pos)
            if score > best_score + 1e-12:
                best_pos, best_score, moved = candidate, score, True
        return best_pos, moved

    def solve(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        initial_positions: np.ndarray = None
    ) -> StackelbergResult:
        """
        Alternate leader association and follower repositioning.

        Args:
            users: Users to serve
            stations: Drone and ground stations
            initial_positions: Optional (num_stations, 3) starting positions

        Returns:
            StackelbergResult with the final association
        """
        if not stations:
            raise ValueError("Stackelberg game needs at least one base station")
        cfg = self.config
        positions = station_positions(stations) if initial_positions is None \
            else np.array(initial_positions, dtype=float)
        ue = np.array([u.position for u in users], dtype=float).reshape(-1, 3)
        drones = drone_indices(stations)

        history: List[float] = []
        assignment = None
        converged = False
        rounds = 0
        for _ in range(cfg.rounds):
            rounds += 1
            leader = self.psca.solve(users, stations, positions, initial_assignment=assignment)
            assignment = leader.binary
            history.append(leader.objective)

            any_moved = False
            for j in drones:
                positions[j], moved = self.follower_move(stations[j], positions[j], ue[assignment == j])
                any_moved = any_moved or moved
            logger.debug("Stackelberg round %d: objective=%.6g moved=%s", rounds, leader.objective, any_moved)

            if not any_moved or (len(history) > 1 and objective_change(history[-2], history[-1]) < cfg.tolerance):
                converged = True
                break

        final = self.psca.solve(users, stations, positions, initial_assignment=assignment)
        logger.info("Stackelberg finished: rounds=%d converged=%s objective=%.6g", rounds, converged, final.objective)
        return StackelbergResult(
            positions=positions,
            association=final,
            rounds=rounds,
            converged=converged,
            objective_history=history
        )
