"""Tests for the VCG auction solver."""

import numpy as np
import pytest

from uav_load_balancing.core.assignment import UNASSIGNED, station_counts
from uav_load_balancing.core.base_station import DroneBaseStation, GroundBaseStation
from uav_load_balancing.core.channel import RateEvaluator
from uav_load_balancing.core.mobile_user import MobileUser
from uav_load_balancing.optimization.vcg import VCGAuctionSolver


@pytest.fixture
def auction_network():
    stations = [
        DroneBaseStation(position=np.array([100.0, 100.0, 100.0]), max_user_capacity=2),
        GroundBaseStation(position=np.array([300.0, 100.0, 0.0]), max_user_capacity=2),
    ]
    users = MobileUser.clone_at_positions(
        MobileUser(),
        np.array([[90.0, 110.0, 0.0], [120.0, 80.0, 0.0], [280.0, 90.0, 0.0],
                  [200.0, 100.0, 0.0], [150.0, 150.0, 0.0], [5000.0, 5000.0, 0.0]])
    )
    return users, stations


class TestVCGAuctionSolver:
    """Test VCGAuctionSolver class."""

    def test_out_of_range_user_loses(self, auction_network):
        """Test a user no station covers values every slot at 0 and pays nothing."""
        users, stations = auction_network
        result = VCGAuctionSolver().run(users, stations)
        assert np.all(result.valuations[5] == 0.0)
        assert result.assignment[5] == UNASSIGNED
        assert result.prices[5] == 0.0
        assert 5 not in result.winners

    def test_capacity_respected(self, auction_network):
        """Test no station sells more slots than it has."""
        users, stations = auction_network
        result = VCGAuctionSolver().run(users, stations)
        counts = station_counts(result.assignment, len(stations))
        assert np.all(counts <= [2, 2])
        assert len(result.winners) == 4

    def test_individual_rationality(self, auction_network):
        """Test every winner pays at most its valuation."""
        users, stations = auction_network
        result = VCGAuctionSolver().run(users, stations)
        assert np.all(result.prices >= 0)
        assert np.all(result.utilities >= -1e-9)
        assert result.total_revenue <= result.total_welfare + 1e-9

    def test_second_price(self):
        """Test a single slot goes to the highest bidder at the runner-up's bid."""
        station = GroundBaseStation(position=np.array([0.0, 0.0, 0.0]), max_user_capacity=1)
        users = MobileUser.clone_at_positions(
            MobileUser(), np.array([[200.0, 0.0, 0.0], [100.0, 0.0, 0.0]])
        )
        result = VCGAuctionSolver().run(users, [station])
        assert result.assignment.tolist() == [UNASSIGNED, 0]
        assert result.prices[1] == pytest.approx(result.valuations[0, 0])
        assert result.prices[1] < result.valuations[1, 0]
        assert result.prices[0] == 0.0

    def test_valuations_are_in_range_rates(self, auction_network):
        """Test bids equal achievable rates inside coverage."""
        users, stations = auction_network
        solver = VCGAuctionSolver()
        values = solver.valuations(users, stations)
        rates = solver.rate_evaluator.rate_matrix(users, stations)
        assert values[0, 0] == pytest.approx(rates[0, 0])
        assert values.shape == (6, 2)

    def test_default_valuations_use_uplink_power(self, auction_network):
        """Test bids are priced at the user's transmit power, not the station's."""
        users, stations = auction_network
        solver = VCGAuctionSolver()
        uplink = RateEvaluator(uplink=True).rate_matrix(users, stations)
        downlink = RateEvaluator().rate_matrix(users, stations)
        values = solver.valuations(users, stations)
        assert solver.rate_evaluator.uplink
        assert np.allclose(values[:5], uplink[:5])
        assert np.all(values[:5] < downlink[:5])

    def test_winner_determination_ties_keep_order(self):
        """Test equal bids are served in input order."""
        valuations = np.array([[5.0], [5.0], [5.0]])
        assignment = VCGAuctionSolver().determine_winners(valuations, np.array([2]))
        assert assignment.tolist() == [0, 0, UNASSIGNED]

    def test_winner_falls_back_to_second_choice(self):
        """Test a user takes its next best station when the first is sold out."""
        valuations = np.array([[9.0, 1.0], [8.0, 2.0]])
        assignment = VCGAuctionSolver().determine_winners(valuations, np.array([1, 1]))
        assert assignment.tolist() == [0, 1]

    def test_allocation_by_id(self, auction_network):
        """Test the id view lists each winner once."""
        users, stations = auction_network
        result = VCGAuctionSolver().run(users, stations)
        mapping = result.allocation_by_id(users, stations)
        assert set(mapping) == {s.station_id for s in stations}
        assert sum(len(v) for v in mapping.values()) == len(result.winners)

    def test_no_stations(self, auction_network):
        """Test an auction needs something to sell."""
        users, _ = auction_network
        with pytest.raises(ValueError):
            VCGAuctionSolver().run(users, [])


if __name__ == '__main__':
    pytest.main([__file__])
