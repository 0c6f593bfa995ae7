"""Tests for utilities and configuration blocks."""

import numpy as np
import pytest

from uav_load_balancing.config import DeploymentRegion, PSCAConfig
from uav_load_balancing.utils import (
    boltzmann_probabilities, db_to_linear, dbm_to_watt, make_rng, vector_to_str, watt_to_dbm
)


class TestUtils:
    """Test utility functions."""

    def test_power_conversions(self):
        """Test dBm to Watt conversions."""
        assert np.isclose(dbm_to_watt(30), 1.0)  # 30 dBm = 1 W
        assert np.isclose(dbm_to_watt(0), 0.001)  # 0 dBm = 1 mW
        assert np.isclose(watt_to_dbm(1.0), 30.0)
        assert np.isclose(watt_to_dbm(0.001), 0.0)
        assert np.isclose(db_to_linear(-30.0), 1e-3)

    def test_make_rng(self):
        """Test seeds are reproducible and generators pass through."""
        assert make_rng(5).random() == make_rng(5).random()
        rng = np.random.default_rng(1)
        assert make_rng(rng) is rng

    def test_boltzmann_probabilities(self):
        """Test the Gibbs distribution favours low costs and sums to one."""
        p = boltzmann_probabilities([1.0, 2.0, 3.0], 1.0)
        assert p.sum() == pytest.approx(1.0)
        assert p[0] > p[1] > p[2]
        assert p[0] / p[1] == pytest.approx(np.e)

    def test_boltzmann_zero_temperature_limit(self):
        """Test huge inverse temperatures neither overflow nor lose the minimum."""
        p = boltzmann_probabilities([5.0, 4.0, 6.0], 1e12)
        assert np.all(np.isfinite(p))
        assert p[1] == pytest.approx(1.0)

    def test_boltzmann_uniform_at_zero_psi(self):
        """Test ψ = 0 gives uniform exploration."""
        assert np.allclose(boltzmann_probabilities([1.0, 50.0], 0.0), [0.5, 0.5])

    def test_boltzmann_infinite_costs(self):
        """Test infinite costs are never sampled and all-infinite is flagged."""
        p = boltzmann_probabilities([np.inf, 1.0], 2.0)
        assert p[0] == 0.0
        assert p[1] == pytest.approx(1.0)
        assert np.all(np.isnan(boltzmann_probabilities([np.inf, np.inf], 2.0)))

    def test_boltzmann_negative_psi(self):
        """Test negative inverse temperature is rejected."""
        with pytest.raises(ValueError):
            boltzmann_probabilities([1.0], -1.0)

    def test_vector_to_str(self):
        """Test vector formatting."""
        assert vector_to_str([1.0, 2.5], precision=1) == "[1.0, 2.5]"
        assert vector_to_str(3.14159, precision=2) == "3.14"


class TestConfig:
    """Test configuration blocks."""

    def test_region_contains_and_clip(self):
        """Test region membership and clipping."""
        region = DeploymentRegion(x_max=100, y_max=100, h_min=10, h_max=50)
        assert region.contains([50, 50, 20])
        assert not region.contains([50, 50, 60])
        assert np.allclose(region.clip([150, -5, 60]), [100, 0, 50])

    def test_region_grid(self):
        """Test lattice points include both corners."""
        region = DeploymentRegion(x_max=100, y_max=100, h_min=10, h_max=50)
        grid = region.grid_points(50, 50, 20)
        assert grid.shape == (3 * 3 * 3, 3)
        assert np.allclose(grid.min(axis=0), [0, 0, 10])
        assert np.allclose(grid.max(axis=0), [100, 100, 50])

    def test_region_validation(self):
        """Test malformed regions and grid steps are rejected."""
        with pytest.raises(ValueError):
            DeploymentRegion(x_min=10, x_max=0)
        with pytest.raises(ValueError):
            DeploymentRegion().grid_axes(0, 10, 10)

    def test_psca_config_validation(self):
        """Test invalid penalty schedules are rejected."""
        with pytest.raises(ValueError):
            PSCAConfig(lambda_scaling=1.5)
        with pytest.raises(ValueError):
            PSCAConfig(primary_weights=(1.2,))


if __name__ == '__main__':
    pytest.main([__file__])
