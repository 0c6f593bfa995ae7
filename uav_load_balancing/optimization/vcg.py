"""Vickrey-Clarke-Groves style auction for station slots."""

import logging
from dataclasses import dataclass
from typing import Dict, List, Sequence, TYPE_CHECKING

import numpy as np

from ..core.assignment import UNASSIGNED, coverage_mask, station_counts
from ..core.base_station import capacities
from ..core.channel import RateEvaluator

if TYPE_CHECKING:
    from ..core.base_station import BaseStation
    from ..core.mobile_user import MobileUser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuctionResult:
    """Valuations, winners and prices of one auction round."""
    valuations: np.ndarray
    assignment: np.ndarray
    prices: np.ndarray

    @property
    def winners(self) -> np.ndarray:
        return np.flatnonzero(self.assignment != UNASSIGNED)

    @property
    def winning_valuations(self) -> np.ndarray:
        values = np.zeros(len(self.assignment))
        won = self.winners
        values[won] = self.valuations[won, self.assignment[won]]
        return values

    @property
    def total_welfare(self) -> float:
        return float(self.winning_valuations.sum())

    @property
    def total_revenue(self) -> float:
        return float(self.prices.sum())

    @property
    def utilities(self) -> np.ndarray:
        """Quasi-linear utility: valuation of the won slot minus the price."""
        return self.winning_valuations - self.prices

    def allocation_by_id(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation']
    ) -> Dict[str, List[str]]:
        mapping = {s.station_id: [] for s in stations}
        for i in self.winners:
            mapping[stations[self.assignment[i]].station_id].append(users[i].user_id)
        return mapping


class VCGAuctionSolver:
    """
    Three-step truthful auction: bids, greedy winner determination, Vickrey prices.

    A user's valuation for a station is its achievable uplink rate, sent
    at the user's own transmit power, when in range and 0 otherwise.
    Winner determination serves users in decreasing order of their best
    valuation, each taking its most valued station with spare capacity;
    this greedy rule approximates exact welfare maximization.
    Each winner pays the highest valuation any other user holds for the
    station it occupies, capped at its own valuation so no winner pays more
    than the slot is worth to it.
    """

    def __init__(self, rate_evaluator: RateEvaluator = None):
        self.rate_evaluator = rate_evaluator or RateEvaluator(uplink=True)

    def valuations(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> np.ndarray:
        """Truthful bids: rate where in range, 0 elsewhere, shape (num_users, num_stations)."""
        rates = self.rate_evaluator.rate_matrix(users, stations, positions)
        return np.where(coverage_mask(users, stations, positions), rates, 0.0)

    def determine_winners(self, valuations: np.ndarray, slots: np.ndarray) -> np.ndarray:
        """
        Greedy winner determination.

        Args:
            valuations: (num_users, num_stations) bids
            slots: Capacity of each station

        Returns:
            Station index per user, UNASSIGNED for losers
        """
        num_users = valuations.shape[0]
        assignment = np.full(num_users, UNASSIGNED, dtype=int)
        if valuations.size == 0:
            return assignment
        remaining = np.array(slots, dtype=int)
        # stable sort keeps input order among equal bids
        order = np.argsort(-valuations.max(axis=1), kind="stable")
        for i in order:
            for j in np.argsort(-valuations[i], kind="stable"):
                if valuations[i, j] <= 0:
                    break
                if remaining[j] > 0:
                    assignment[i] = j
                    remaining[j] -= 1
                    break
        return assignment

    def vickrey_prices(self, valuations: np.ndarray, assignment: np.ndarray) -> np.ndarray:
        """Externality price per user; 0 for users who won nothing."""
        prices = np.zeros(len(assignment))
        for i in np.flatnonzero(assignment != UNASSIGNED):
            j = assignment[i]
            others = np.delete(valuations[:, j], i)
            highest_other = float(others.max()) if others.size else 0.0
            prices[i] = min(highest_other, float(valuations[i, j]))
        return prices

    def run(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> AuctionResult:
        """
        Run the auction on a snapshot.

        Args:
            users: Bidders
            stations: Stations offering capacity slots
            positions: Optional (num_stations, 3) station positions

        Returns:
            AuctionResult with assignment and prices
        """
        if not stations:
            raise ValueError("Auction needs at least one base station")
        values = self.valuations(users, stations, positions)
        assignment = self.determine_winners(values, capacities(stations))
        prices = self.vickrey_prices(values, assignment)
        result = AuctionResult(valuations=values, assignment=assignment, prices=prices)
        logger.info(
            "Auction finished: %d/%d winners, welfare=%.4g revenue=%.4g, slots used %s",
            len(result.winners), len(users), result.total_welfare, result.total_revenue,
            station_counts(assignment, len(stations)).tolist()
        )
        return result
