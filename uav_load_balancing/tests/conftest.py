"""Shared fixtures for the load balancing tests."""

import numpy as np
import pytest

from uav_load_balancing.config import (
    AGCTLBConfig, DeploymentRegion, PotentialGameConfig, PSCAConfig
)
from uav_load_balancing.core.base_station import DroneBaseStation, GroundBaseStation
from uav_load_balancing.core.mobile_user import MobileUser


@pytest.fixture
def fast_psca_config():
    return PSCAConfig(max_outer_iterations=10, max_inner_iterations=20)


@pytest.fixture
def small_region():
    return DeploymentRegion(x_min=0, x_max=400, y_min=0, y_max=400, h_min=50, h_max=150)


@pytest.fixture
def small_game_config():
    return PotentialGameConfig(grid_step_x=100, grid_step_y=100, grid_step_h=50, max_iterations=20)


@pytest.fixture
def symmetric_pair():
    """Two identical ground stations and three users equidistant from both."""
    stations = [
        GroundBaseStation(position=np.array([0.0, 0.0, 0.0]), max_user_capacity=5),
        GroundBaseStation(position=np.array([200.0, 0.0, 0.0]), max_user_capacity=5),
    ]
    template = MobileUser(data_rate=1e9)
    users = MobileUser.clone_at_positions(
        template, np.array([[100.0, -50.0, 0.0], [100.0, 0.0, 0.0], [100.0, 50.0, 0.0]])
    )
    return users, stations


@pytest.fixture
def clustered_fixture():
    """Four corner stations with twenty users clustered next to the first one."""
    corners = [[0.0, 0.0], [1000.0, 0.0], [0.0, 1000.0], [1000.0, 1000.0]]
    stations = [
        GroundBaseStation(position=np.array([x, y, 0.0]), max_user_capacity=20) for x, y in corners
    ]
    offsets = np.array([[dx, dy] for dx in (60.0, 80.0, 100.0, 120.0, 140.0) for dy in (70.0, 90.0, 110.0, 130.0)])
    positions = np.column_stack([offsets, np.zeros(len(offsets))])
    users = MobileUser.clone_at_positions(MobileUser(data_rate=1.2e8), positions)
    return users, stations


@pytest.fixture
def mixed_network(small_region):
    """One drone and one ground station over a light-traffic user population."""
    drone = DroneBaseStation(position=np.array([100.0, 100.0, 100.0]), coverage_radius=1000.0)
    ground = GroundBaseStation(position=np.array([200.0, 200.0, 0.0]))
    users = MobileUser.clone_at_random_positions(MobileUser(data_rate=1e5), 10, 400.0, seed=7)
    return users, [drone, ground]


@pytest.fixture
def feasible_agctlb_config(small_region, small_game_config, fast_psca_config):
    return AGCTLBConfig(
        region=small_region,
        max_outer_iterations=3,
        psca=fast_psca_config,
        game=small_game_config
    )
