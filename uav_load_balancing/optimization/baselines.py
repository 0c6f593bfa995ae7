"""Heuristic user association baselines used for comparison.

Every baseline walks the users once and returns a binary assignment.
Stations are considered only when the user is in range and, except for
the random baseline, when the station still has a free slot. Users left
without such a station stay ``UNASSIGNED``.
"""

import logging
from typing import Callable, Dict, Sequence, TYPE_CHECKING

import numpy as np

from ..core.assignment import UNASSIGNED, coverage_mask, station_counts
from ..core.base_station import StationKind, capacities, station_positions
from ..core.fairness import AlphaFairnessModel, clamp_loads
from ..core.mobile_user import user_positions
from ..utils import SeedLike, make_rng

if TYPE_CHECKING:
    from ..core.base_station import BaseStation
    from ..core.mobile_user import MobileUser

logger = logging.getLogger(__name__)

RANDOM = "random_assignment"
ROUND_ROBIN = "round_robin"
GREEDY = "greedy_assignment"
NEAREST_NEIGHBOR = "nearest_neighbor"
LOAD_BALANCED = "load_balanced"
SIGNAL_STRENGTH = "signal_strength"
BASELINE_METHODS = (RANDOM, ROUND_ROBIN, GREEDY, NEAREST_NEIGHBOR, LOAD_BALANCED, SIGNAL_STRENGTH)


def load_balance_index(binary: np.ndarray, num_stations: int) -> float:
    """Coefficient of variation of per-station user counts; 0 for an empty network."""
    counts = station_counts(binary, num_stations).astype(float)
    if counts.size == 0 or counts.mean() == 0:
        return 0.0
    return float(counts.std() / counts.mean())


class BaselineAssigner:
    """
    Single-pass association heuristics.

    Rates, received powers and loads come from the fairness model's rate
    evaluator so the baselines see the same channel as the game-theoretic
    solvers.
    """

    def __init__(self, fairness: AlphaFairnessModel = None):
        self.fairness = fairness or AlphaFairnessModel()
        self._methods: Dict[str, Callable[..., np.ndarray]] = {
            RANDOM: self.random_assignment,
            ROUND_ROBIN: self.round_robin,
            GREEDY: self.greedy,
            NEAREST_NEIGHBOR: self.nearest_neighbor,
            LOAD_BALANCED: self.load_balanced,
            SIGNAL_STRENGTH: self.signal_strength,
        }

    @property
    def methods(self):
        return list(self._methods)

    def assign(
        self,
        method: str,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None,
        seed: SeedLike = None
    ) -> np.ndarray:
        """
        Run a baseline by name.

        Args:
            method: One of ``methods``
            users: Mobile users
            stations: Drone and ground stations
            positions: Optional (num_stations, 3) override of station positions
            seed: Seed or Generator; only the random baseline draws from it

        Returns:
            Station index per user, UNASSIGNED where nothing was available
        """
        if method not in self._methods:
            raise ValueError(f"Unknown baseline {method!r}; expected one of {self.methods}")
        if not stations:
            raise ValueError("Need at least one base station")
        if method == RANDOM:
            binary = self.random_assignment(users, stations, positions, seed=seed)
        else:
            binary = self._methods[method](users, stations, positions)
        logger.debug(
            "Baseline %s assigned %d of %d users",
            method, int(np.sum(binary != UNASSIGNED)), len(users)
        )
        return binary

    def random_assignment(self, users, stations, positions=None, seed: SeedLike = None) -> np.ndarray:
        """Uniform pick among in-range stations, capacity ignored."""
        rng = make_rng(seed)
        covered = coverage_mask(users, stations, positions)
        binary = np.full(len(users), UNASSIGNED, dtype=int)
        for i in range(len(users)):
            options = np.flatnonzero(covered[i])
            if len(options):
                binary[i] = int(rng.choice(options))
        return binary

    def round_robin(self, users, stations, positions=None) -> np.ndarray:
        """Rotate a pointer over the stations, skipping full or out-of-range ones."""
        covered = coverage_mask(users, stations, positions)
        slots = capacities(stations)
        counts = np.zeros(len(stations), dtype=int)
        binary = np.full(len(users), UNASSIGNED, dtype=int)
        pointer = 0
        for i in range(len(users)):
            for step in range(len(stations)):
                j = (pointer + step) % len(stations)
                if covered[i, j] and counts[j] < slots[j]:
                    binary[i] = j
                    counts[j] += 1
                    pointer = (j + 1) % len(stations)
                    break
        return binary

    def greedy(self, users, stations, positions=None) -> np.ndarray:
        """
        Highest utility first: rate scaled by the station's remaining headroom.

        The utility of station j for user i is r_ij · (1 - ρ_j) with ρ_j the
        load already placed on j, so busy stations lose their appeal.
        """
        rates = self.fairness.rate_evaluator.rate_matrix(users, stations, positions)
        demand = self.fairness.demand_matrix(users, stations, positions)
        raw = np.zeros(len(stations))

        def utility(i, open_stations):
            return rates[i, open_stations] * (1.0 - clamp_loads(raw[open_stations]))

        return self._sequential(users, stations, positions, utility, demand, raw)

    def nearest_neighbor(self, users, stations, positions=None) -> np.ndarray:
        """Closest station; drones by 3D distance, ground stations by horizontal distance."""
        pos = station_positions(stations) if positions is None else np.asarray(positions, dtype=float)
        ue = user_positions(list(users))
        if len(ue) == 0:
            return np.zeros(0, dtype=int)
        delta = ue[:, np.newaxis, :] - pos[np.newaxis, :, :]
        drone = np.array([s.kind is StationKind.DRONE for s in stations])
        distance = np.where(
            drone[np.newaxis, :],
            np.linalg.norm(delta, axis=2),
            np.linalg.norm(delta[:, :, :2], axis=2)
        )
        return self._sequential(users, stations, positions, lambda i, open_stations: -distance[i, open_stations])

    def load_balanced(self, users, stations, positions=None) -> np.ndarray:
        """Heaviest users first, each to the in-range station carrying the least traffic load."""
        demand = self.fairness.demand_matrix(users, stations, positions)
        raw = np.zeros(len(stations))
        # stable sort keeps input order among equal demands
        order = np.argsort(-np.array([u.data_rate for u in users]), kind="stable")
        return self._sequential(
            users, stations, positions,
            lambda i, open_stations: -raw[open_stations],
            demand, raw, order
        )

    def signal_strength(self, users, stations, positions=None) -> np.ndarray:
        """Strongest downlink received power P_j · g_ij."""
        gains = self.fairness.rate_evaluator.channel.gain_matrix(users, stations, positions)
        power = np.array([s.transmit_power for s in stations])[np.newaxis, :] * gains
        return self._sequential(users, stations, positions, lambda i, open_stations: power[i, open_stations])

    def _sequential(self, users, stations, positions, score, demand=None, raw=None, order=None) -> np.ndarray:
        """
        Shared single pass: each user takes the best-scoring open station.

        Args:
            score: Callable (user index, open station indices) -> scores, higher is better
            demand: Per-pair load contribution added to ``raw`` on assignment
            raw: Running station loads, updated in place
            order: Visiting order of the users; input order when omitted
        """
        covered = coverage_mask(users, stations, positions)
        slots = capacities(stations)
        counts = np.zeros(len(stations), dtype=int)
        binary = np.full(len(users), UNASSIGNED, dtype=int)
        for i in range(len(users)) if order is None else order:
            open_stations = np.flatnonzero(covered[i] & (counts < slots))
            if not len(open_stations):
                continue
            # argmax keeps the first station on ties
            j = int(open_stations[int(np.argmax(score(i, open_stations)))])
            binary[i] = j
            counts[j] += 1
            if raw is not None:
                raw[j] += demand[i, j]
        return binary
