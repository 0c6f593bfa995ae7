"""Tests for the cooperative Shapley solver."""

import numpy as np
import pytest

from uav_load_balancing.config import ShapleyConfig
from uav_load_balancing.core.assignment import UNASSIGNED
from uav_load_balancing.core.base_station import GroundBaseStation
from uav_load_balancing.core.fairness import FairnessPolicy
from uav_load_balancing.core.mobile_user import MobileUser
from uav_load_balancing.optimization.shapley import EXACT, MONTE_CARLO, ShapleyCooperativeSolver


@pytest.fixture
def coalition_network():
    """Three stations: two sharing the user cluster and one far away from it."""
    stations = [
        GroundBaseStation(position=np.array([0.0, 0.0, 0.0]), coverage_radius=500.0),
        GroundBaseStation(position=np.array([200.0, 0.0, 0.0]), coverage_radius=500.0),
        GroundBaseStation(position=np.array([5000.0, 5000.0, 0.0]), coverage_radius=100.0),
    ]
    users = MobileUser.clone_at_positions(
        MobileUser(data_rate=5e8),
        np.array([[50.0, 20.0, 0.0], [80.0, -30.0, 0.0], [150.0, 10.0, 0.0], [120.0, 40.0, 0.0]])
    )
    return users, stations


class TestShapleyCooperativeSolver:
    """Test ShapleyCooperativeSolver class."""

    def test_empty_coalition_is_worth_nothing(self, coalition_network):
        """Test v(∅) = 0."""
        users, stations = coalition_network
        assert ShapleyCooperativeSolver().coalition_value([], users, stations) == 0.0

    def test_exact_efficiency(self, coalition_network):
        """Test exact Shapley values add up to the grand coalition value."""
        users, stations = coalition_network
        result = ShapleyCooperativeSolver().shapley_values(users, stations)
        assert result.method == EXACT
        assert result.num_samples == 0
        assert result.total == pytest.approx(result.grand_coalition_value)
        assert set(result.values) == {s.station_id for s in stations}

    def test_dummy_station_gets_zero(self, coalition_network):
        """Test a station no user can reach contributes nothing under proportional fairness."""
        users, stations = coalition_network
        result = ShapleyCooperativeSolver(ShapleyConfig(policy=FairnessPolicy.PROPORTIONAL_FAIR)).shapley_values(
            users, stations
        )
        assert result.values[stations[2].station_id] == pytest.approx(0.0, abs=1e-12)

    def test_symmetric_stations_share_equally(self):
        """Test interchangeable stations receive equal values."""
        stations = [GroundBaseStation(position=np.array([0.0, 0.0, 0.0])),
                    GroundBaseStation(position=np.array([0.0, 0.0, 0.0]))]
        users = MobileUser.clone_at_positions(
            MobileUser(data_rate=5e8), np.array([[40.0, 0.0, 0.0], [0.0, 60.0, 0.0]])
        )
        result = ShapleyCooperativeSolver().shapley_values(users, stations)
        a, b = (result.values[s.station_id] for s in stations)
        assert a == pytest.approx(b)

    def test_saturated_coalition_uses_infeasible_value(self, coalition_network):
        """Test saturation is replaced by the configured finite value."""
        users, stations = coalition_network
        heavy = [u.clone() for u in users]
        for u in heavy:
            u.data_rate = 1e13
        solver = ShapleyCooperativeSolver(ShapleyConfig(infeasible_value=123.0))
        assert solver.coalition_value([0], heavy, stations) == 123.0
        result = solver.shapley_values(heavy, stations)
        assert all(np.isfinite(v) for v in result.values.values())

    def test_sampling_fallback(self, coalition_network):
        """Test large coalitions switch to permutation sampling and stay efficient."""
        users, stations = coalition_network
        config = ShapleyConfig(max_exact_stations=1, num_samples=50)
        result = ShapleyCooperativeSolver(config).shapley_values(users, stations, seed=0)
        assert result.method == MONTE_CARLO
        assert result.num_samples == 50
        # every sampled permutation telescopes to v(N)
        assert result.total == pytest.approx(result.grand_coalition_value)

    def test_sampling_close_to_exact(self, coalition_network):
        """Test sampled values approach the exact ones."""
        users, stations = coalition_network
        exact = ShapleyCooperativeSolver().shapley_values(users, stations)
        sampled = ShapleyCooperativeSolver(ShapleyConfig(max_exact_stations=0, num_samples=3000)).shapley_values(
            users, stations, seed=1
        )
        for key, value in exact.values.items():
            assert sampled.values[key] == pytest.approx(value, abs=0.1 * abs(exact.grand_coalition_value) + 1e-9)

    def test_allocation_respects_capacity(self, coalition_network):
        """Test the min-max greedy allocation serves every user within capacity."""
        users, stations = coalition_network
        for s in stations:
            s.max_user_capacity = 2
        result = ShapleyCooperativeSolver().solve(users, stations, seed=0)
        assignment = result.allocation.assignment
        assert np.all(assignment != UNASSIGNED)
        assert np.bincount(assignment, minlength=3).tolist()[:2] == [2, 2]
        assert result.allocation.policy is FairnessPolicy.MIN_MAX
        assert result.shapley.method == EXACT

    def test_no_stations(self, coalition_network):
        """Test an empty coalition is rejected."""
        users, _ = coalition_network
        with pytest.raises(ValueError):
            ShapleyCooperativeSolver().shapley_values(users, [])


if __name__ == '__main__':
    pytest.main([__file__])
