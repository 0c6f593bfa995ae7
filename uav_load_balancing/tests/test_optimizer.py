"""Tests for the high-level optimizer facade."""

import numpy as np
import pytest

from uav_load_balancing import balance_load
from uav_load_balancing.config import DeploymentRegion, StackelbergConfig
from uav_load_balancing.core.assignment import UNASSIGNED
from uav_load_balancing.core.base_station import DroneBaseStation, GroundBaseStation
from uav_load_balancing.core.channel import RateEvaluator
from uav_load_balancing.core.fairness import FairnessPolicy
from uav_load_balancing.optimization.optimizer import (
    AlgorithmType, LoadBalancingOptimizer, LoadBalancingOutcome
)
from uav_load_balancing.optimization.vcg import VCGAuctionSolver


@pytest.fixture
def optimizer(small_region, feasible_agctlb_config, fast_psca_config):
    return LoadBalancingOptimizer(
        region=small_region,
        agctlb_config=feasible_agctlb_config,
        stackelberg_config=StackelbergConfig(rounds=2, psca=fast_psca_config)
    )


class TestLoadBalancingOptimizer:
    """Test LoadBalancingOptimizer class."""

    @pytest.mark.parametrize("algorithm", list(AlgorithmType))
    def test_every_algorithm(self, optimizer, mixed_network, algorithm):
        """Test each algorithm returns a scored outcome."""
        users, stations = mixed_network
        outcome = optimizer.optimize(algorithm, users, stations, seed=0)
        assert isinstance(outcome, LoadBalancingOutcome)
        assert outcome.algorithm is algorithm
        assert outcome.assignment.shape == (len(users),)
        assert outcome.positions.shape == (2, 3)
        assert np.all((outcome.loads >= 0) & (outcome.loads <= 1))
        assert np.allclose(outcome.utilities, 1.0 - outcome.loads)
        assert outcome.iterations >= 1

    def test_outcome_scored_under_optimizer_policy(self, optimizer, mixed_network):
        """Test the reported objective uses the optimizer's fairness policy."""
        users, stations = mixed_network
        outcome = optimizer.optimize(AlgorithmType.AUCTION_BASED, users, stations)
        expected = optimizer.fairness.evaluate(outcome.assignment, users, stations, outcome.positions)
        assert outcome.objective == pytest.approx(expected.objective)
        assert optimizer.fairness.policy is FairnessPolicy.PROPORTIONAL_FAIR

    def test_details(self, optimizer, mixed_network):
        """Test algorithm-specific details are passed through."""
        users, stations = mixed_network
        nash = optimizer.optimize(AlgorithmType.NASH_EQUILIBRIUM, users, stations, seed=1)
        coop = optimizer.optimize(AlgorithmType.COOPERATIVE_GAME, users, stations, seed=1)
        auction = optimizer.optimize(AlgorithmType.AUCTION_BASED, users, stations)
        assert nash.details['feasible'] is True
        assert set(coop.details['shapley_values']) == {s.station_id for s in stations}
        assert auction.details['total_revenue'] <= auction.details['total_welfare'] + 1e-9

    @pytest.mark.parametrize("algorithm", [a for a in AlgorithmType if a.is_baseline])
    def test_baselines_keep_stations_in_place(self, optimizer, mixed_network, algorithm):
        """Test baselines only associate users and report a balance index."""
        users, stations = mixed_network
        outcome = optimizer.optimize(algorithm, users, stations, seed=2)
        assert np.allclose(outcome.positions, [s.position for s in stations])
        assert outcome.converged
        assert outcome.details['load_balance_index'] >= 0.0
        assert np.all(outcome.assignment != UNASSIGNED)

    def test_baseline_membership(self):
        """Test the six heuristics are flagged and the game-theoretic algorithms are not."""
        baselines = [a for a in AlgorithmType if a.is_baseline]
        assert len(baselines) == 6
        assert not AlgorithmType.AUCTION_BASED.is_baseline
        assert AlgorithmType("round_robin") is AlgorithmType.ROUND_ROBIN

    def test_auction_bids_at_uplink_rates(self, optimizer, mixed_network):
        """Test the auction values slots at the users' transmit power."""
        users, stations = mixed_network
        outcome = optimizer.optimize(AlgorithmType.AUCTION_BASED, users, stations)
        expected = VCGAuctionSolver(RateEvaluator(uplink=True)).run(users, stations)
        assert outcome.details['total_welfare'] == pytest.approx(expected.total_welfare)
        assert np.array_equal(outcome.assignment, expected.assignment)

    def test_algorithm_by_value(self, optimizer, mixed_network):
        """Test algorithms may be named by their string value."""
        users, stations = mixed_network
        outcome = optimizer.optimize("auction_based", users, stations)
        assert outcome.algorithm is AlgorithmType.AUCTION_BASED

    def test_invalid_algorithm(self, optimizer, mixed_network):
        """Test unknown algorithms are rejected."""
        users, stations = mixed_network
        with pytest.raises(ValueError):
            optimizer.optimize("simulated_annealing", users, stations)

    def test_no_stations(self, optimizer, mixed_network):
        """Test an empty station list fails fast."""
        users, _ = mixed_network
        with pytest.raises(ValueError):
            optimizer.optimize(AlgorithmType.AUCTION_BASED, users, [])

    def test_compare_algorithms(self, optimizer, mixed_network):
        """Test every requested algorithm is run and seeded reproducibly."""
        users, stations = mixed_network
        algorithms = [AlgorithmType.NASH_EQUILIBRIUM, AlgorithmType.AUCTION_BASED]
        a = optimizer.compare_algorithms(users, stations, seed=3, algorithms=algorithms)
        b = optimizer.compare_algorithms(users, stations, seed=3, algorithms=algorithms)
        assert list(a) == algorithms
        for algorithm in algorithms:
            assert np.array_equal(a[algorithm].assignment, b[algorithm].assignment)
            assert np.array_equal(a[algorithm].positions, b[algorithm].positions)


class TestRandomLayout:
    """Test the seeded snapshot builder."""

    def test_counts_and_order(self):
        """Test drones come before ground stations and counts match."""
        users, stations = LoadBalancingOptimizer.random_layout(num_drones=2, num_ground=3, num_users=12, seed=0)
        assert len(users) == 12
        assert [type(s) for s in stations] == [DroneBaseStation] * 2 + [GroundBaseStation] * 3
        assert all(s.position[2] == pytest.approx(100.0) for s in stations[:2])

    def test_positions_inside_region(self):
        """Test everything is scattered inside the region."""
        region = DeploymentRegion(x_max=200.0, y_max=300.0)
        users, stations = LoadBalancingOptimizer.random_layout(region=region, seed=1)
        for entity in list(users) + list(stations):
            assert 0.0 <= entity.position[0] <= 200.0
            assert 0.0 <= entity.position[1] <= 300.0

    def test_seeded(self):
        """Test equal seeds give equal layouts."""
        a, _ = LoadBalancingOptimizer.random_layout(seed=5)
        b, _ = LoadBalancingOptimizer.random_layout(seed=5)
        assert all(np.allclose(u.position, v.position) for u, v in zip(a, b))


class TestBalanceLoad:
    """Test the convenience function."""

    def test_balance_load(self, mixed_network):
        """Test the shortcut forwards optimizer settings."""
        users, stations = mixed_network
        outcome = balance_load(users, stations, AlgorithmType.AUCTION_BASED, policy=FairnessPolicy.MIN_MAX)
        assert outcome.algorithm is AlgorithmType.AUCTION_BASED
        assert outcome.objective == pytest.approx(outcome.max_load)
        assert np.all(outcome.assignment != UNASSIGNED)


if __name__ == '__main__':
    pytest.main([__file__])
