"""Tests for the alternating AGC-TLB coordinator."""

import numpy as np
import pytest

from uav_load_balancing.config import AGCTLBConfig
from uav_load_balancing.core.assignment import UNASSIGNED
from uav_load_balancing.core.base_station import DroneBaseStation, GroundBaseStation
from uav_load_balancing.optimization.agctlb import AGCTLBCoordinator, ConstraintViolations, Solution


class TestAGCTLBCoordinator:
    """Test AGCTLBCoordinator class."""

    def test_light_traffic_is_feasible(self, mixed_network, feasible_agctlb_config):
        """Test a lightly loaded mixed network ends with no violations."""
        users, stations = mixed_network
        solution = AGCTLBCoordinator(feasible_agctlb_config).solve(users, stations, seed=0)
        assert solution.feasible
        assert solution.violations.is_empty()
        assert solution.infeasibility_report() == "Solution is feasible"
        assert np.all(solution.assignment != UNASSIGNED)
        assert np.all(solution.loads <= feasible_agctlb_config.max_load)
        assert feasible_agctlb_config.region.contains(solution.positions[0])

    def test_solution_bookkeeping(self, mixed_network, feasible_agctlb_config):
        """Test iteration count, history and metrics are consistent."""
        users, stations = mixed_network
        solution = AGCTLBCoordinator(feasible_agctlb_config).solve(users, stations, seed=1)
        assert 1 <= solution.iterations <= feasible_agctlb_config.max_outer_iterations
        assert len(solution.objective_history) == solution.iterations + 1
        metrics = solution.metrics()
        assert metrics['max_load'] == pytest.approx(float(np.max(solution.loads)))
        assert metrics['violations'] == 0
        assert metrics['feasible'] is True
        mapping = solution.assignment_by_id(users, stations)
        assert sum(len(v) for v in mapping.values()) == len(users)

    def test_ground_station_does_not_move(self, mixed_network, feasible_agctlb_config):
        """Test only drones are repositioned."""
        users, stations = mixed_network
        solution = AGCTLBCoordinator(feasible_agctlb_config).solve(users, stations, seed=2)
        assert np.allclose(solution.positions[1], stations[1].position)
        assert np.allclose(stations[0].position, [100.0, 100.0, 100.0])

    def test_seeded_runs_reproducible(self, mixed_network, feasible_agctlb_config):
        """Test equal seeds give identical solutions."""
        users, stations = mixed_network
        coordinator = AGCTLBCoordinator(feasible_agctlb_config)
        a = coordinator.solve(users, stations, seed=9)
        b = coordinator.solve(users, stations, seed=9)
        assert np.array_equal(a.positions, b.positions)
        assert np.array_equal(a.assignment, b.assignment)
        assert a.objective_history == b.objective_history

    def test_initial_positions_on_lattice(self, mixed_network, feasible_agctlb_config):
        """Test random starts are lattice points within the drone's altitude bounds."""
        _, stations = mixed_network
        positions = AGCTLBCoordinator(feasible_agctlb_config).initial_positions(stations, seed=4)
        assert feasible_agctlb_config.region.contains(positions[0])
        assert positions[0][2] in (50.0, 100.0, 150.0)
        assert np.allclose(positions[1], stations[1].position)

    def test_initial_positions_unreachable_altitude(self, feasible_agctlb_config):
        """Test a drone whose altitude band misses the lattice is rejected."""
        drone = DroneBaseStation(position=np.array([0.0, 0.0, 250.0]), min_altitude=200.0, max_altitude=300.0)
        with pytest.raises(ValueError):
            AGCTLBCoordinator(feasible_agctlb_config).initial_positions([drone], seed=0)

    def test_explicit_initial_positions(self, mixed_network, feasible_agctlb_config):
        """Test caller-provided starting positions are used."""
        users, stations = mixed_network
        start = np.array([[200.0, 200.0, 100.0], stations[1].position])
        solution = AGCTLBCoordinator(feasible_agctlb_config).solve(users, stations, initial_positions=start, seed=0)
        assert solution.feasible

    def test_no_stations(self, mixed_network):
        """Test an empty station list fails fast."""
        users, _ = mixed_network
        with pytest.raises(ValueError):
            AGCTLBCoordinator().solve(users, [])


class TestConstraintViolations:
    """Test constraint checking and reporting."""

    def test_every_family_detected(self, small_region):
        """Test each violated family is reported without repair."""
        config = AGCTLBConfig(region=small_region, max_load=0.5)
        drone = DroneBaseStation(position=np.array([100.0, 100.0, 100.0]), max_user_capacity=1)
        ground = GroundBaseStation(position=np.array([0.0, 0.0, 0.0]))
        positions = np.array([[900.0, 100.0, 100.0], [0.0, 0.0, 0.0]])
        violations = AGCTLBCoordinator(config).check_constraints(
            np.array([UNASSIGNED, 7, 0, 0]), np.array([0.9, 0.1]), [drone, ground], positions
        )
        assert len(violations.assignment) == 2
        assert len(violations.capacity) == 1
        assert len(violations.load) == 1
        assert len(violations.deployment) == 1
        assert violations.count == 5
        assert not violations.is_empty()

    def test_report_lists_families(self):
        """Test the infeasibility report names violated families only."""
        violations = ConstraintViolations(load=["DBS-1: load 0.9000 outside [0, 0.8]"])
        solution = Solution(
            positions=np.zeros((1, 3)),
            assignment=np.array([0]),
            loads=np.array([0.9]),
            objective=1.0,
            violations=violations,
            iterations=1,
            converged=True
        )
        report = solution.infeasibility_report()
        assert not solution.feasible
        assert "load:" in report
        assert "capacity:" not in report
        assert violations.as_dict()['load'] == ["DBS-1: load 0.9000 outside [0, 0.8]"]


if __name__ == '__main__':
    pytest.main([__file__])
