"""Traffic load and α-fairness objective.

Station load follows

    ρ_j = Σ_i x_ij · λ_i · μ / r_ij,    λ_i = d_i / (μ · 8)

clamped to 1.0 (saturation). The α-fair objective is

    φ_α(ρ) = max_j ρ_j                          α = ∞  (min-max)
           = -Σ_j log(1 - ρ_j)                  α = 1  (proportional fair)
           = Σ_j (1 - ρ_j)^(1-α) / (α - 1)      otherwise

and is +∞ as soon as one station saturates, whatever the policy.
"""

import enum
import logging
import math
from dataclasses import dataclass
from typing import Dict, Sequence, TYPE_CHECKING

import numpy as np

from .assignment import UNASSIGNED, candidate_mask, coverage_mask
from .channel import RateEvaluator

if TYPE_CHECKING:
    from .base_station import BaseStation
    from .mobile_user import MobileUser

logger = logging.getLogger(__name__)

MAX_LOAD = 1.0


class FairnessPolicy(enum.Enum):
    """Named α values of the fairness family."""
    MIN_SUM = 0.0
    PROPORTIONAL_FAIR = 1.0
    LATENCY_OPTIMAL = 2.0
    MIN_MAX = math.inf

    @property
    def alpha(self) -> float:
        return self.value


def alpha_fairness_objective(loads, policy: FairnessPolicy) -> float:
    """
    Scalar α-fair objective of a load vector.

    Args:
        loads: Per-station loads ρ_j
        policy: Fairness policy selecting α

    Returns:
        φ_α(ρ); math.inf when a station is saturated
    """
    rho = np.asarray(loads, dtype=float)
    if rho.size == 0:
        return 0.0
    if np.any(rho >= MAX_LOAD):
        return math.inf
    alpha = policy.alpha
    if math.isinf(alpha):
        return float(np.max(rho))
    if abs(alpha - 1.0) < 1e-9:
        return float(-np.sum(np.log1p(-rho)))
    return float(np.sum(np.power(1.0 - rho, 1.0 - alpha)) / (alpha - 1.0))


def station_cost(load: float, policy: FairnessPolicy) -> float:
    """Per-station share of the α-fair objective; +∞ once the station saturates."""
    if load >= MAX_LOAD:
        return math.inf
    alpha = policy.alpha
    if math.isinf(alpha):
        return float(load)
    if abs(alpha - 1.0) < 1e-9:
        return float(-math.log1p(-load))
    return float((1.0 - load) ** (1.0 - alpha) / (alpha - 1.0))


def objective_change(previous: float, current: float) -> float:
    """Absolute change between two objective values; two infinities count as no change."""
    if math.isinf(previous) and math.isinf(current):
        return 0.0
    return abs(previous - current)


def weighted_loads(fractional: np.ndarray, demand: np.ndarray) -> np.ndarray:
    """
    Unclamped loads Σ_i x_ij · D_ij for a fractional assignment.

    Zero weights never pick up infinite demand (unreachable pairs).
    """
    fractional = np.asarray(fractional, dtype=float)
    with np.errstate(invalid="ignore"):
        contrib = np.where(fractional > 0, fractional * demand, 0.0)
    return contrib.sum(axis=0)


def clamp_loads(raw_loads: np.ndarray) -> np.ndarray:
    return np.minimum(np.asarray(raw_loads, dtype=float), MAX_LOAD)


@dataclass(frozen=True)
class LoadBalancingResult:
    """Loads and objective of a binary assignment under one policy."""
    assignment: np.ndarray
    loads: np.ndarray
    objective: float
    policy: FairnessPolicy

    @property
    def total_load(self) -> float:
        return float(np.sum(self.loads))

    @property
    def max_load(self) -> float:
        return float(np.max(self.loads)) if self.loads.size else 0.0

    @property
    def load_variance(self) -> float:
        return float(np.var(self.loads)) if self.loads.size else 0.0

    def efficiency(self) -> float:
        """1 - variance / max_load², floored at zero; 1.0 for an idle network."""
        if self.max_load <= 0:
            return 1.0
        return max(0.0, 1.0 - self.load_variance / self.max_load ** 2)


class AlphaFairnessModel:
    """
    Load and α-fairness evaluation over a station/user snapshot.

    The model never mutates stations or users; candidate station positions are
    passed in explicitly.
    """

    def __init__(
        self,
        rate_evaluator: RateEvaluator = None,
        policy: FairnessPolicy = FairnessPolicy.PROPORTIONAL_FAIR,
        mean_packet_size: float = 1000.0
    ):
        """
        Args:
            rate_evaluator: Rate model; a default downlink evaluator when omitted
            policy: Fairness policy
            mean_packet_size: Mean packet size μ
        """
        if mean_packet_size <= 0:
            raise ValueError(f"mean_packet_size must be positive, got {mean_packet_size}")
        self.rate_evaluator = rate_evaluator or RateEvaluator()
        self.policy = policy
        self.mean_packet_size = float(mean_packet_size)

    def with_policy(self, policy: FairnessPolicy) -> 'AlphaFairnessModel':
        return AlphaFairnessModel(self.rate_evaluator, policy, self.mean_packet_size)

    def demand_matrix(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> np.ndarray:
        """
        Load contribution λ_i·μ / r_ij of each user at each station.

        Pairs with a zero rate get +∞ so serving them saturates the station.

        Returns:
            Array of shape (num_users, num_stations)
        """
        rates = self.rate_evaluator.rate_matrix(users, stations, positions)
        arrival = np.array([u.arrival_rate(self.mean_packet_size) for u in users])
        numerator = (arrival * self.mean_packet_size)[:, np.newaxis]
        with np.errstate(divide="ignore"):
            demand = np.where(rates > 0, numerator / np.where(rates > 0, rates, 1.0), math.inf)
        # users without traffic load nobody, even over a dead link
        demand[numerator[:, 0] == 0, :] = 0.0
        return demand

    def traffic_load(
        self,
        station: 'BaseStation',
        users: Sequence['MobileUser'],
        position: np.ndarray = None
    ) -> float:
        """Load ρ_j of a single station serving the given users."""
        if not users:
            return 0.0
        pos = None if position is None else np.asarray(position, dtype=float)[np.newaxis, :]
        demand = self.demand_matrix(users, [station], pos)
        return float(min(MAX_LOAD, demand[:, 0].sum()))

    def loads_from_binary(self, binary: np.ndarray, demand: np.ndarray) -> np.ndarray:
        binary = np.asarray(binary, dtype=int)
        raw = np.zeros(demand.shape[1])
        for i, j in enumerate(binary):
            if j != UNASSIGNED:
                raw[j] += demand[i, j]
        return clamp_loads(raw)

    def loads_from_fractional(self, fractional: np.ndarray, demand: np.ndarray) -> np.ndarray:
        return clamp_loads(weighted_loads(fractional, demand))

    def objective(self, loads) -> float:
        return alpha_fairness_objective(loads, self.policy)

    def evaluate(
        self,
        binary: np.ndarray,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> LoadBalancingResult:
        """Loads and objective of a given binary assignment."""
        demand = self.demand_matrix(users, stations, positions)
        loads = self.loads_from_binary(binary, demand)
        return LoadBalancingResult(np.asarray(binary, dtype=int), loads, self.objective(loads), self.policy)

    def greedy_assignment(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> LoadBalancingResult:
        """
        Sequential greedy α-fair assignment.

        Each user joins the in-range station with spare capacity that yields
        the lowest global objective. When no such station gives a finite
        objective the user goes to the station with the lowest load so far.
        """
        if not stations:
            raise ValueError("Need at least one base station")
        demand = self.demand_matrix(users, stations, positions)
        allowed = candidate_mask(coverage_mask(users, stations, positions))
        capacity = np.array([s.max_user_capacity for s in stations])

        binary = np.full(len(users), UNASSIGNED, dtype=int)
        raw = np.zeros(len(stations))
        counts = np.zeros(len(stations), dtype=int)
        for i in range(len(users)):
            best_j, best_obj = UNASSIGNED, math.inf
            for j in np.flatnonzero(allowed[i] & (counts < capacity)):
                trial = raw.copy()
                trial[j] += demand[i, j]
                obj = self.objective(clamp_loads(trial))
                if obj < best_obj:
                    best_j, best_obj = int(j), obj
            if best_j == UNASSIGNED:
                best_j = int(np.argmin(raw))
                logger.debug("User %d fell back to least-loaded station %d (load %.3g)", i, best_j, raw[best_j])
            binary[i] = best_j
            raw[best_j] += demand[i, best_j]
            counts[best_j] += 1

        loads = clamp_loads(raw)
        return LoadBalancingResult(binary, loads, self.objective(loads), self.policy)

    def compare_policies(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> Dict[FairnessPolicy, LoadBalancingResult]:
        """Greedy assignment under each of the four policies."""
        return {
            policy: self.with_policy(policy).greedy_assignment(users, stations, positions)
            for policy in FairnessPolicy
        }
