"""Base station implementations for air-ground load balancing."""

import enum
import itertools
from abc import ABC, abstractmethod
from typing import List, Optional, Sequence, TYPE_CHECKING

import numpy as np

from ..utils import SeedLike, make_rng

if TYPE_CHECKING:
    from .mobile_user import MobileUser

_station_ids = itertools.count(1)


class StationKind(enum.Enum):
    """Variant tag resolved once when a station is built."""
    DRONE = "drone"
    GROUND = "ground"


class BaseStation(ABC):
    """
    Abstract base class for a serving station.

    Exposes the capability set the solvers rely on: position, bandwidth,
    transmit power, user capacity and a coverage test. Drone-specific fields
    live on DroneBaseStation and are reached through ``kind``.
    """

    kind: StationKind

    def __init__(
        self,
        position: np.ndarray = None,
        bandwidth: float = 20e6,
        max_user_capacity: int = 20,
        coverage_radius: float = 300.0,
        transmit_power: float = 1.0,
        station_id: Optional[str] = None
    ):
        """
        Initialize base station.

        Args:
            position: 3D position [x, y, z] in meters. Default: [0, 0, 0]
            bandwidth: Channel bandwidth in Hz
            max_user_capacity: Maximum number of associated users N_j
            coverage_radius: Service radius in meters (3D distance)
            transmit_power: Downlink transmission power in Watts
            station_id: Stable identifier; generated when omitted
        """
        self.position = np.array([0.0, 0.0, 0.0]) if position is None else np.array(position, dtype=float)
        self.bandwidth = float(bandwidth)
        self.max_user_capacity = int(max_user_capacity)
        self.coverage_radius = float(coverage_radius)
        self.transmit_power = float(transmit_power)
        self.station_id = station_id if station_id is not None else f"{self.kind.value}-{next(_station_ids)}"

        if self.position.shape != (3,):
            raise ValueError(f"position must have 3 coordinates, got shape {self.position.shape}")
        if self.bandwidth <= 0:
            raise ValueError(f"bandwidth must be positive, got {self.bandwidth}")
        if self.max_user_capacity < 0:
            raise ValueError(f"max_user_capacity must be non-negative, got {self.max_user_capacity}")
        if self.transmit_power <= 0:
            raise ValueError(f"transmit_power must be positive, got {self.transmit_power}")

    @property
    def is_drone(self) -> bool:
        return self.kind is StationKind.DRONE

    def is_in_range(self, user: 'MobileUser', position: np.ndarray = None) -> bool:
        """
        Whether a user lies inside the coverage sphere.

        Args:
            user: Mobile user to test
            position: Candidate station position; defaults to the current one
        """
        origin = self.position if position is None else np.asarray(position, dtype=float)
        return bool(np.linalg.norm(user.position - origin) <= self.coverage_radius)

    @abstractmethod
    def clone(self) -> 'BaseStation':
        """Create a copy of this base station."""

    @classmethod
    def clone_at_random_positions(
        cls,
        template: 'BaseStation',
        count: int,
        region_size: float,
        seed: SeedLike = None
    ) -> List['BaseStation']:
        """
        Create multiple base stations at random horizontal positions.

        Args:
            template: Template base station to clone
            count: Number of stations to create
            region_size: Size of the square region for random placement
            seed: Seed or Generator for reproducible placement

        Returns:
            List of base stations keeping the template's height
        """
        rng = make_rng(seed)
        stations = []
        for _ in range(count):
            bs = template.clone()
            bs.position[:2] = rng.random(2) * region_size
            stations.append(bs)
        return stations

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self.station_id}, pos={self.position})"


class DroneBaseStation(BaseStation):
    """
    Drone base station (DBS) whose 3D position is a decision variable.
    """

    kind = StationKind.DRONE

    def __init__(
        self,
        position: np.ndarray = None,
        bandwidth: float = 20e6,
        max_user_capacity: int = 20,
        coverage_radius: float = 300.0,
        transmit_power: float = 5.0,
        min_altitude: float = 10.0,
        max_altitude: float = 300.0,
        energy_level: float = 1e6,
        max_energy: float = 1e6,
        station_id: Optional[str] = None
    ):
        """
        Initialize drone base station.

        Args:
            position: 3D position [x, y, altitude] in meters. Default: [0, 0, 100]
            bandwidth: Channel bandwidth in Hz
            max_user_capacity: Maximum number of associated users
            coverage_radius: Service radius in meters
            transmit_power: Downlink transmission power in Watts
            min_altitude: Lowest allowed flight altitude in meters
            max_altitude: Highest allowed flight altitude in meters
            energy_level: Remaining battery energy in Joules
            max_energy: Battery capacity in Joules
            station_id: Stable identifier; generated when omitted
        """
        if position is None:
            position = np.array([0.0, 0.0, 100.0])
        super().__init__(position, bandwidth, max_user_capacity, coverage_radius, transmit_power, station_id)
        self.min_altitude = float(min_altitude)
        self.max_altitude = float(max_altitude)
        self.energy_level = float(energy_level)
        self.max_energy = float(max_energy)

        if self.min_altitude > self.max_altitude:
            raise ValueError(f"min_altitude {self.min_altitude} exceeds max_altitude {self.max_altitude}")

    @property
    def energy_fraction(self) -> float:
        if self.max_energy <= 0:
            return 0.0
        return self.energy_level / self.max_energy

    def clip_altitude(self, position: np.ndarray) -> np.ndarray:
        """Return a copy of position with the altitude forced into bounds."""
        clipped = np.array(position, dtype=float)
        clipped[2] = min(max(clipped[2], self.min_altitude), self.max_altitude)
        return clipped

    def clone(self) -> 'DroneBaseStation':
        return DroneBaseStation(
            position=self.position.copy(),
            bandwidth=self.bandwidth,
            max_user_capacity=self.max_user_capacity,
            coverage_radius=self.coverage_radius,
            transmit_power=self.transmit_power,
            min_altitude=self.min_altitude,
            max_altitude=self.max_altitude,
            energy_level=self.energy_level,
            max_energy=self.max_energy
        )


class GroundBaseStation(BaseStation):
    """
    Terrestrial macro base station (MBS) at a fixed site.
    """

    kind = StationKind.GROUND

    def __init__(
        self,
        position: np.ndarray = None,
        bandwidth: float = 20e6,
        max_user_capacity: int = 30,
        coverage_radius: float = 1500.0,
        transmit_power: float = 20.0,
        station_id: Optional[str] = None
    ):
        super().__init__(position, bandwidth, max_user_capacity, coverage_radius, transmit_power, station_id)

    def clone(self) -> 'GroundBaseStation':
        return GroundBaseStation(
            position=self.position.copy(),
            bandwidth=self.bandwidth,
            max_user_capacity=self.max_user_capacity,
            coverage_radius=self.coverage_radius,
            transmit_power=self.transmit_power
        )


def station_positions(stations: Sequence[BaseStation]) -> np.ndarray:
    """Stack station positions into an (N, 3) array."""
    if not stations:
        return np.zeros((0, 3))
    return np.array([s.position for s in stations], dtype=float)


def drone_indices(stations: Sequence[BaseStation]) -> List[int]:
    """Indices of the drone stations within a station list."""
    return [j for j, s in enumerate(stations) if s.kind is StationKind.DRONE]


def capacities(stations: Sequence[BaseStation]) -> np.ndarray:
    return np.array([s.max_user_capacity for s in stations], dtype=int)
