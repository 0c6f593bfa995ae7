"""Mobile User implementation for load balancing."""

import itertools
from typing import List, Optional

import numpy as np

from ..utils import SeedLike, make_rng

_user_ids = itertools.count(10000)


class MobileUser:
    """
    Represents a mobile user (UE) requesting service from the network.

    The core only reads a user's position, traffic demand and QoS thresholds.
    Mobility and traffic generation belong to the surrounding simulation.
    """

    def __init__(
        self,
        position: np.ndarray = None,
        data_rate: float = 1e6,
        max_acceptable_latency: float = 100.0,
        min_required_throughput: float = 5e5,
        tx_power: float = 0.02,
        user_id: Optional[str] = None
    ):
        """
        Initialize a mobile user.

        Args:
            position: 3D position [x, y, z] in meters. Default: [0, 0, 0]
            data_rate: Traffic demand in bits per second
            max_acceptable_latency: QoS latency bound in milliseconds
            min_required_throughput: QoS throughput floor in bits per second
            tx_power: Uplink transmission power in Watts
            user_id: Stable identifier; generated when omitted
        """
        self.position = np.array([0.0, 0.0, 0.0]) if position is None else np.array(position, dtype=float)
        self.data_rate = float(data_rate)
        self.max_acceptable_latency = float(max_acceptable_latency)
        self.min_required_throughput = float(min_required_throughput)
        self.tx_power = float(tx_power)
        self.user_id = user_id if user_id is not None else f"UE-{next(_user_ids)}"

        if self.position.shape != (3,):
            raise ValueError(f"position must have 3 coordinates, got shape {self.position.shape}")
        if self.data_rate < 0:
            raise ValueError(f"data_rate must be non-negative, got {self.data_rate}")
        if self.tx_power <= 0:
            raise ValueError(f"tx_power must be positive, got {self.tx_power}")

    def arrival_rate(self, mean_packet_size: float) -> float:
        """Packet arrival rate λ_i = data rate / (μ · 8)."""
        if mean_packet_size <= 0:
            raise ValueError(f"mean_packet_size must be positive, got {mean_packet_size}")
        return self.data_rate / (mean_packet_size * 8)

    def clone(self, user_id: Optional[str] = None) -> 'MobileUser':
        """Create a copy of this mobile user with a fresh identifier."""
        return MobileUser(
            position=self.position.copy(),
            data_rate=self.data_rate,
            max_acceptable_latency=self.max_acceptable_latency,
            min_required_throughput=self.min_required_throughput,
            tx_power=self.tx_power,
            user_id=user_id
        )

    @classmethod
    def clone_at_random_positions(
        cls,
        template: 'MobileUser',
        num_users: int,
        region_size: float,
        seed: SeedLike = None
    ) -> List['MobileUser']:
        """
        Create multiple mobile users at random ground positions.

        Args:
            template: Template mobile user to clone
            num_users: Number of users to create
            region_size: Size of the square region for random placement
            seed: Seed or Generator for reproducible placement

        Returns:
            List of mobile users at random positions (same height as template)
        """
        rng = make_rng(seed)
        users = []
        for _ in range(num_users):
            user = template.clone()
            user.position[:2] = rng.random(2) * region_size
            users.append(user)
        return users

    @classmethod
    def clone_at_positions(cls, template: 'MobileUser', positions: np.ndarray) -> List['MobileUser']:
        """
        Create multiple mobile users at specified positions.

        Args:
            template: Template mobile user to clone
            positions: Array of shape (N, 3) with N positions

        Returns:
            List of mobile users at specified positions
        """
        users = []
        for position in np.asarray(positions, dtype=float):
            user = template.clone()
            user.position = position.copy()
            users.append(user)
        return users

    def __repr__(self) -> str:
        return (f"MobileUser(id={self.user_id}, pos={self.position}, "
                f"rate={self.data_rate:.0f}bps)")


def user_positions(users: List[MobileUser]) -> np.ndarray:
    """Stack user positions into an (N, 3) array."""
    if not users:
        return np.zeros((0, 3))
    return np.array([u.position for u in users], dtype=float)
