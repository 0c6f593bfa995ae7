"""Cooperative load balancing: Shapley values over a station coalition."""

import itertools
import logging
import math
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, Sequence, TYPE_CHECKING

import numpy as np
from scipy.special import factorial

from ..config import ShapleyConfig
from ..core.assignment import coverage_mask
from ..core.channel import RateEvaluator
from ..core.fairness import (
    AlphaFairnessModel, FairnessPolicy, LoadBalancingResult, alpha_fairness_objective, clamp_loads
)
from ..utils import SeedLike, make_rng

if TYPE_CHECKING:
    from ..core.base_station import BaseStation
    from ..core.mobile_user import MobileUser

logger = logging.getLogger(__name__)

EXACT = "exact"
MONTE_CARLO = "monte_carlo"


@dataclass(frozen=True)
class ShapleyResult:
    """Per-station Shapley values and how they were obtained."""
    values: Dict[str, float]
    grand_coalition_value: float
    method: str
    num_samples: int = 0

    @property
    def total(self) -> float:
        return float(sum(self.values.values()))


@dataclass(frozen=True)
class CooperativeResult:
    allocation: LoadBalancingResult
    shapley: ShapleyResult


class _CoalitionGame:
    """
    Characteristic function over station subsets for a fixed snapshot.

    v(S) serves every user from its best-rate in-range station inside S
    and evaluates the α-fair objective over the loads of S alone. Users
    with no in-range station in S add nothing. Saturated coalitions are
    worth ``infeasible_value`` instead of +∞ so marginals stay finite.
    """

    def __init__(self, rates: np.ndarray, demand: np.ndarray, coverage: np.ndarray,
                 policy: FairnessPolicy, infeasible_value: float):
        self.rates = rates
        self.demand = demand
        self.coverage = coverage
        self.policy = policy
        self.infeasible_value = infeasible_value
        self._cache: Dict[FrozenSet[int], float] = {}

    def value(self, coalition: Iterable[int]) -> float:
        key = frozenset(coalition)
        if key not in self._cache:
            self._cache[key] = self._evaluate(sorted(key))
        return self._cache[key]

    def _evaluate(self, members) -> float:
        if not members:
            return 0.0
        members = np.asarray(members, dtype=int)
        reachable = np.where(self.coverage[:, members], self.rates[:, members], -np.inf)
        served = np.isfinite(reachable).any(axis=1)
        best = members[np.argmax(reachable, axis=1)]

        raw = np.zeros(self.rates.shape[1])
        for i in np.flatnonzero(served):
            raw[best[i]] += self.demand[i, best[i]]
        objective = alpha_fairness_objective(clamp_loads(raw[members]), self.policy)
        return self.infeasible_value if math.isinf(objective) else objective


class ShapleyCooperativeSolver:
    """
    Shapley allocation of the α-fair objective among cooperating stations.

    Exact enumeration weights each marginal contribution v(S ∪ {i}) - v(S)
    by |S|!(n - |S| - 1)!/n! and is used up to ``max_exact_stations``
    players; larger coalitions fall back to Monte Carlo permutation sampling,
    which the result reports through ``method``.
    """

    def __init__(self, config: ShapleyConfig = None, rate_evaluator: RateEvaluator = None):
        self.config = config or ShapleyConfig()
        self.fairness = AlphaFairnessModel(rate_evaluator, self.config.policy, self.config.mean_packet_size)

    def _game(self, users, stations, positions) -> _CoalitionGame:
        rates = self.fairness.rate_evaluator.rate_matrix(users, stations, positions)
        demand = self.fairness.demand_matrix(users, stations, positions)
        coverage = coverage_mask(users, stations, positions)
        return _CoalitionGame(rates, demand, coverage, self.config.policy, self.config.infeasible_value)

    def coalition_value(
        self,
        coalition: Iterable[int],
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> float:
        """v(S) for a set of station indices."""
        return self._game(users, stations, positions).value(coalition)

    def shapley_values(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None,
        seed: SeedLike = None
    ) -> ShapleyResult:
        """
        Shapley value of every station in the grand coalition.

        Args:
            users: Users shared by the coalition
            stations: Coalition members
            positions: Optional (num_stations, 3) station positions
            seed: Seed or Generator for the sampled estimator

        Returns:
            ShapleyResult keyed by station id
        """
        if not stations:
            raise ValueError("Shapley values need at least one station")
        game = self._game(users, stations, positions)
        n = len(stations)
        grand = game.value(range(n))

        if n <= self.config.max_exact_stations:
            phi = self._exact(game, n)
            method, samples = EXACT, 0
        else:
            samples = self.config.num_samples
            phi = self._sampled(game, n, samples, make_rng(seed))
            method = MONTE_CARLO
            logger.info("Shapley: %d stations exceed exact limit %d, sampling %d permutations",
                        n, self.config.max_exact_stations, samples)

        values = {s.station_id: float(v) for s, v in zip(stations, phi)}
        return ShapleyResult(values=values, grand_coalition_value=grand, method=method, num_samples=samples)

    @staticmethod
    def _exact(game: _CoalitionGame, n: int) -> np.ndarray:
        phi = np.zeros(n)
        n_factorial = factorial(n, exact=True)
        for i in range(n):
            others = [k for k in range(n) if k != i]
            for size in range(n):
                weight = factorial(size, exact=True) * factorial(n - size - 1, exact=True) / n_factorial
                for subset in itertools.combinations(others, size):
                    phi[i] += weight * (game.value(subset + (i,)) - game.value(subset))
        return phi

    @staticmethod
    def _sampled(game: _CoalitionGame, n: int, num_samples: int, rng: np.random.Generator) -> np.ndarray:
        phi = np.zeros(n)
        for _ in range(num_samples):
            coalition = []
            previous = 0.0
            for player in rng.permutation(n):
                coalition.append(int(player))
                current = game.value(coalition)
                phi[player] += current - previous
                previous = current
        return phi / max(num_samples, 1)

    def allocate(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> LoadBalancingResult:
        """Cooperative association: greedy per-user assignment under min-max fairness."""
        return self.fairness.with_policy(FairnessPolicy.MIN_MAX).greedy_assignment(users, stations, positions)

    def solve(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None,
        seed: SeedLike = None
    ) -> CooperativeResult:
        allocation = self.allocate(users, stations, positions)
        shapley = self.shapley_values(users, stations, positions, seed)
        logger.info("Cooperative allocation: max load %.4f, Shapley method %s", allocation.max_load, shapley.method)
        return CooperativeResult(allocation=allocation, shapley=shapley)
