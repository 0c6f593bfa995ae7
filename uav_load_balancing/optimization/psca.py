"""Penalty-based successive convex approximation for user association."""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, TYPE_CHECKING

import numpy as np

from ..config import PSCAConfig
from ..core.assignment import (
    binarize, candidate_mask, coverage_mask, one_hot, station_counts
)
from ..core.base_station import capacities
from ..core.fairness import AlphaFairnessModel, MAX_LOAD, objective_change, weighted_loads

if TYPE_CHECKING:
    from ..core.base_station import BaseStation
    from ..core.mobile_user import MobileUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PSCAResult:
    """Outcome of one P-SCA run."""
    fractional: np.ndarray
    binary: np.ndarray
    loads: np.ndarray
    objective: float
    fractional_objective: float
    iterations: int
    converged: bool
    capacities: np.ndarray
    sum_tolerance: float = 1e-6

    def validate(self) -> List[str]:
        """
        Check the association constraints without repairing anything.

        Returns:
            Human readable violations; empty when the result is valid
        """
        violations = []
        for i, total in enumerate(self.fractional.sum(axis=1)):
            if abs(total - 1.0) > self.sum_tolerance:
                violations.append(f"user {i}: weights sum to {total:.6f}")
        counts = station_counts(self.binary, len(self.capacities))
        for j, (count, cap) in enumerate(zip(counts, self.capacities)):
            if count > cap:
                violations.append(f"station {j}: {count} users exceed capacity {cap}")
        return violations


class PSCASolver:
    """
    Relaxed user association under the α-fair objective.

    The binary association problem is relaxed to x_ij ∈ [0, 1] and the
    non-convex penalty Σ(x - x²), which vanishes only on binary points, is
    added with weight 1/λ. Each inner sweep replaces the penalty by its
    first-order expansion around the sweep's starting point and runs
    coordinate descent over users; the outer loop shrinks λ so the penalty
    gradually pushes the relaxation to a binary solution.
    """

    def __init__(self, fairness: AlphaFairnessModel = None, config: PSCAConfig = None):
        """
        Args:
            fairness: Load/objective model (policy and mean packet size)
            config: Penalty schedule, tolerances and iteration caps
        """
        self.fairness = fairness or AlphaFairnessModel()
        self.config = config or PSCAConfig()

    def solve(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None,
        initial_assignment: Optional[np.ndarray] = None
    ) -> PSCAResult:
        """
        Run P-SCA for fixed station positions.

        Args:
            users: Users to associate
            stations: Candidate serving stations
            positions: Optional (num_stations, 3) station positions overriding
                the stations' own
            initial_assignment: Optional binary assignment used as the
                starting point; otherwise weight is spread uniformly over
                each user's in-range stations

        Returns:
            PSCAResult with fractional and binarized association
        """
        if not stations:
            raise ValueError("PSCA needs at least one base station")
        cfg = self.config
        num_users, num_stations = len(users), len(stations)
        caps = capacities(stations)

        demand = self.fairness.demand_matrix(users, stations, positions)
        allowed = candidate_mask(coverage_mask(users, stations, positions))
        x = self._initial_point(allowed, initial_assignment)

        lam = cfg.initial_lambda
        previous = self.fairness.objective(self.fairness.loads_from_fractional(x, demand))
        converged = num_users == 0
        iterations = 0

        while not converged and iterations < cfg.max_outer_iterations:
            iterations += 1
            x = self._inner_loop(x, demand, allowed, caps, lam)
            current = self.fairness.objective(self.fairness.loads_from_fractional(x, demand))
            logger.debug("PSCA outer %d: lambda=%.3g objective=%.6g", iterations, lam, current)

            if objective_change(previous, current) < cfg.tolerance:
                converged = True
            previous = current
            lam *= cfg.lambda_scaling
            if lam < cfg.min_lambda:
                converged = True

        binary = binarize(x)
        loads = self.fairness.loads_from_binary(binary, demand)
        objective = self.fairness.objective(loads)
        logger.info(
            "PSCA finished: users=%d stations=%d iterations=%d converged=%s objective=%.6g",
            num_users, num_stations, iterations, converged, objective
        )
        return PSCAResult(
            fractional=x,
            binary=binary,
            loads=loads,
            objective=objective,
            fractional_objective=previous,
            iterations=iterations,
            converged=converged,
            capacities=caps,
            sum_tolerance=cfg.sum_tolerance
        )

    def _initial_point(self, allowed: np.ndarray, initial_assignment: Optional[np.ndarray]) -> np.ndarray:
        if initial_assignment is not None:
            initial_assignment = np.asarray(initial_assignment, dtype=int)
            if initial_assignment.shape != (allowed.shape[0],):
                raise ValueError(
                    f"initial_assignment must have shape ({allowed.shape[0]},), got {initial_assignment.shape}"
                )
            x = one_hot(initial_assignment, allowed.shape[1])
            # unassigned users start from the uniform point
            empty = x.sum(axis=1) == 0
            x[empty] = allowed[empty] / allowed[empty].sum(axis=1, keepdims=True)
            return x
        return allowed / allowed.sum(axis=1, keepdims=True)

    def _candidates(
        self,
        row_allowed: np.ndarray,
        counts_without_user: np.ndarray,
        caps: np.ndarray
    ) -> List[np.ndarray]:
        """
        Candidate weight rows for one user.

        Each candidate concentrates a primary weight on one in-range station
        and spreads the remainder evenly over the user's other in-range
        stations. Stations already at capacity are skipped as primaries
        unless every in-range station is full.
        """
        in_range = np.flatnonzero(row_allowed)
        primaries = [j for j in in_range if counts_without_user[j] < caps[j]]
        if not primaries:
            primaries = list(in_range)

        rows = []
        for primary in primaries:
            others = in_range[in_range != primary]
            for weight in self.config.primary_weights:
                if weight < 1.0 and len(others) == 0:
                    continue
                row = np.zeros(len(row_allowed))
                row[primary] = weight
                if len(others):
                    row[others] = (1.0 - weight) / len(others)
                rows.append(row)
        if not rows:
            # single in-range station and no unit weight configured
            row = np.zeros(len(row_allowed))
            row[primaries[0]] = 1.0
            rows.append(row)
        return rows

    def _score(self, raw_loads: np.ndarray, penalty: float, lam: float) -> Tuple[float, float]:
        """Penalized objective, with total overload as tie-break between saturated points."""
        objective = self.fairness.objective(np.minimum(raw_loads, MAX_LOAD)) + penalty / lam
        overload = float(np.sum(np.maximum(raw_loads - MAX_LOAD, 0.0)))
        return objective, overload

    def _inner_loop(
        self,
        x: np.ndarray,
        demand: np.ndarray,
        allowed: np.ndarray,
        caps: np.ndarray,
        lam: float
    ) -> np.ndarray:
        x = x.copy()
        for _ in range(self.config.max_inner_iterations):
            xf = x.copy()
            raw = weighted_loads(x, demand)
            # linearized penalty x - xf² - 2·xf·(x - xf), per user row
            row_penalty = np.sum(x - xf ** 2 - 2 * xf * (x - xf), axis=1)
            penalty = float(row_penalty.sum())
            start_score = self._score(raw, penalty, lam)
            counts = station_counts(binarize(x), x.shape[1])

            for i in range(x.shape[0]):
                own = int(np.argmax(x[i]))
                counts_without_user = counts.copy()
                counts_without_user[own] -= 1
                raw_without_user = weighted_loads(np.delete(x, i, axis=0), np.delete(demand, i, axis=0))
                penalty_without_user = penalty - row_penalty[i]

                best_row, best_score, best_terms = None, None, None
                for row in self._candidates(allowed[i], counts_without_user, caps):
                    row_raw = raw_without_user + weighted_loads(row[np.newaxis, :], demand[i:i + 1])
                    row_pen = float(np.sum(row - xf[i] ** 2 - 2 * xf[i] * (row - xf[i])))
                    score = self._score(row_raw, penalty_without_user + row_pen, lam)
                    if best_score is None or score < best_score:
                        best_row, best_score, best_terms = row, score, (row_raw, row_pen)

                x[i] = best_row
                raw, row_penalty[i] = best_terms
                penalty = penalty_without_user + row_penalty[i]
                counts = counts_without_user
                counts[int(np.argmax(best_row))] += 1

            end_score = self._score(raw, penalty, lam)
            if objective_change(start_score[0], end_score[0]) < self.config.tolerance \
                    and objective_change(start_score[1], end_score[1]) < self.config.tolerance:
                break
        return x
