"""High-level optimizer interface for air-ground load balancing."""

import enum
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from ..config import AGCTLBConfig, DeploymentRegion, ShapleyConfig, StackelbergConfig
from ..core.base_station import BaseStation, DroneBaseStation, GroundBaseStation, station_positions
from ..core.channel import RateEvaluator
from ..core.fairness import AlphaFairnessModel, FairnessPolicy
from ..core.mobile_user import MobileUser
from ..utils import SeedLike, make_rng
from .agctlb import AGCTLBCoordinator
from .baselines import BASELINE_METHODS, BaselineAssigner, load_balance_index
from .shapley import ShapleyCooperativeSolver
from .stackelberg import StackelbergSolver
from .vcg import VCGAuctionSolver

logger = logging.getLogger(__name__)


class AlgorithmType(enum.Enum):
    NASH_EQUILIBRIUM = "nash_equilibrium"
    STACKELBERG_GAME = "stackelberg_game"
    COOPERATIVE_GAME = "cooperative_game"
    AUCTION_BASED = "auction_based"
    RANDOM_ASSIGNMENT = "random_assignment"
    ROUND_ROBIN = "round_robin"
    GREEDY_ASSIGNMENT = "greedy_assignment"
    NEAREST_NEIGHBOR = "nearest_neighbor"
    LOAD_BALANCED = "load_balanced"
    SIGNAL_STRENGTH = "signal_strength"

    @property
    def is_baseline(self) -> bool:
        """Heuristic association with stations left where they are."""
        return self.value in BASELINE_METHODS


@dataclass(frozen=True)
class LoadBalancingOutcome:
    """Uniform result returned for every algorithm."""
    algorithm: AlgorithmType
    assignment: np.ndarray
    positions: np.ndarray
    loads: np.ndarray
    objective: float
    iterations: int
    converged: bool
    details: Dict[str, object] = field(default_factory=dict)

    @property
    def utilities(self) -> np.ndarray:
        """Per-station utility 1 - ρ_j."""
        return 1.0 - self.loads

    @property
    def max_load(self) -> float:
        return float(np.max(self.loads)) if self.loads.size else 0.0


class LoadBalancingOptimizer:
    """
    High-level interface for air-ground load balancing.

    Provides one entry point for the game-theoretic algorithms and the
    heuristic baselines they are compared against, and reports
    every result on the same terms: assignment, station loads and the
    α-fair objective under the optimizer's policy.
    """

    def __init__(
        self,
        policy: FairnessPolicy = FairnessPolicy.PROPORTIONAL_FAIR,
        region: DeploymentRegion = None,
        rate_evaluator: RateEvaluator = None,
        mean_packet_size: float = 1000.0,
        agctlb_config: AGCTLBConfig = None,
        stackelberg_config: StackelbergConfig = None,
        shapley_config: ShapleyConfig = None
    ):
        """
        Initialize the optimizer.

        Args:
            policy: Fairness policy used to score every outcome
            region: Deployment region for drone positions
            rate_evaluator: Rate model shared by all solvers
            mean_packet_size: Mean packet size μ
            agctlb_config: AGC-TLB settings; derived from policy/region when omitted
            stackelberg_config: Stackelberg settings
            shapley_config: Cooperative game settings
        """
        self.policy = policy
        self.region = region or DeploymentRegion()
        self.rate_evaluator = rate_evaluator or RateEvaluator()
        self.fairness = AlphaFairnessModel(self.rate_evaluator, policy, mean_packet_size)
        self.agctlb_config = agctlb_config or AGCTLBConfig(
            region=self.region, policy=policy, mean_packet_size=mean_packet_size
        )
        self.stackelberg_config = stackelberg_config or StackelbergConfig(mean_packet_size=mean_packet_size)
        self.shapley_config = shapley_config or ShapleyConfig(policy=policy, mean_packet_size=mean_packet_size)

    def optimize(
        self,
        algorithm: AlgorithmType,
        users: Sequence[MobileUser],
        stations: Sequence[BaseStation],
        seed: SeedLike = None
    ) -> LoadBalancingOutcome:
        """
        Run one algorithm on a snapshot.

        Args:
            algorithm: Which game-theoretic formulation or baseline to use
            users: Mobile users
            stations: Drone and ground stations
            seed: Seed or Generator for stochastic steps

        Returns:
            LoadBalancingOutcome scored under the optimizer's policy
        """
        if not stations:
            raise ValueError("Need at least one base station")
        algorithm = AlgorithmType(algorithm)
        logger.info("Running %s with %d stations and %d users", algorithm.value, len(stations), len(users))

        if algorithm is AlgorithmType.NASH_EQUILIBRIUM:
            solution = AGCTLBCoordinator(self.agctlb_config, self.rate_evaluator).solve(users, stations, seed=seed)
            assignment, positions = solution.assignment, solution.positions
            iterations, converged = solution.iterations, solution.converged
            details = {'feasible': solution.feasible, 'violations': solution.violations.as_dict()}
        elif algorithm is AlgorithmType.STACKELBERG_GAME:
            result = StackelbergSolver(self.stackelberg_config, self.region, self.rate_evaluator).solve(users, stations)
            assignment, positions = result.assignment, result.positions
            iterations, converged = result.rounds, result.converged
            details = {'objective_history': result.objective_history}
        elif algorithm is AlgorithmType.COOPERATIVE_GAME:
            result = ShapleyCooperativeSolver(self.shapley_config, self.rate_evaluator).solve(
                users, stations, seed=seed
            )
            assignment, positions = result.allocation.assignment, station_positions(stations)
            iterations, converged = 1, True
            details = {'shapley_values': result.shapley.values, 'shapley_method': result.shapley.method}
        elif algorithm.is_baseline:
            assignment = BaselineAssigner(self.fairness).assign(algorithm.value, users, stations, seed=seed)
            positions = station_positions(stations)
            iterations, converged = 1, True
            details = {'load_balance_index': load_balance_index(assignment, len(stations))}
        else:
            bids = RateEvaluator(self.rate_evaluator.channel, uplink=True)
            auction = VCGAuctionSolver(bids).run(users, stations)
            assignment, positions = auction.assignment, station_positions(stations)
            iterations, converged = 1, True
            details = {
                'prices': auction.prices,
                'total_welfare': auction.total_welfare,
                'total_revenue': auction.total_revenue,
            }

        scored = self.fairness.evaluate(assignment, users, stations, positions)
        return LoadBalancingOutcome(
            algorithm=algorithm,
            assignment=assignment,
            positions=positions,
            loads=scored.loads,
            objective=scored.objective,
            iterations=iterations,
            converged=converged,
            details=details
        )

    def compare_algorithms(
        self,
        users: Sequence[MobileUser],
        stations: Sequence[BaseStation],
        seed: Optional[int] = None,
        algorithms: List[AlgorithmType] = None
    ) -> Dict[AlgorithmType, LoadBalancingOutcome]:
        """Run several algorithms on the same snapshot with independent, reproducible seeds."""
        algorithms = algorithms or list(AlgorithmType)
        streams = np.random.SeedSequence(seed).spawn(len(algorithms))
        return {
            algorithm: self.optimize(algorithm, users, stations, seed=np.random.default_rng(stream))
            for algorithm, stream in zip(algorithms, streams)
        }

    @staticmethod
    def random_layout(
        num_drones: int = 3,
        num_ground: int = 1,
        num_users: int = 30,
        region: DeploymentRegion = None,
        drone_altitude: float = 100.0,
        data_rate: float = 1e6,
        seed: SeedLike = None
    ) -> Tuple[List[MobileUser], List[BaseStation]]:
        """
        Build a seeded random snapshot for demos and experiments.

        Args:
            num_drones: Number of drone base stations
            num_ground: Number of ground base stations
            num_users: Number of mobile users
            region: Region to scatter everything in
            drone_altitude: Starting drone altitude in meters
            data_rate: Demand of every user in bps
            seed: Seed or Generator for positions

        Returns:
            (users, stations) with drones listed before ground stations
        """
        region = region or DeploymentRegion()
        rng = make_rng(seed)

        def scatter(count: int, height: float) -> np.ndarray:
            xy = rng.uniform([region.x_min, region.y_min], [region.x_max, region.y_max], size=(count, 2))
            return np.column_stack([xy, np.full(count, height)])

        user_template = MobileUser(data_rate=data_rate)
        users = MobileUser.clone_at_positions(user_template, scatter(num_users, 0.0))
        drones = [DroneBaseStation(position=p) for p in scatter(num_drones, drone_altitude)]
        ground = [GroundBaseStation(position=p) for p in scatter(num_ground, 30.0)]
        return users, drones + ground


# Convenience function for external API
def balance_load(
    users: Sequence[MobileUser],
    stations: Sequence[BaseStation],
    algorithm: AlgorithmType = AlgorithmType.NASH_EQUILIBRIUM,
    seed: SeedLike = None,
    **kwargs
) -> LoadBalancingOutcome:
    """
    Convenience function for a single optimization run.

    Args:
        users: Mobile users
        stations: Drone and ground stations
        algorithm: Algorithm to run
        seed: Seed or Generator
        **kwargs: Parameters passed to LoadBalancingOptimizer()

    Returns:
        LoadBalancingOutcome
    """
    return LoadBalancingOptimizer(**kwargs).optimize(algorithm, users, stations, seed=seed)
