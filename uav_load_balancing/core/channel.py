"""Channel and rate models for air-ground load balancing."""

from dataclasses import dataclass
from typing import Optional, Sequence, TYPE_CHECKING

import numpy as np
from scipy.spatial.distance import cdist

from ..utils import dbm_to_watt, db_to_linear
from .base_station import StationKind, station_positions
from .mobile_user import user_positions

if TYPE_CHECKING:
    from .base_station import BaseStation, DroneBaseStation, GroundBaseStation
    from .mobile_user import MobileUser

SPEED_OF_LIGHT = 3e8


@dataclass(frozen=True)
class A2GChannelResult:
    path_loss_db: float
    channel_gain: float
    elevation_angle: float  # degrees
    los_probability: float
    nlos_probability: float


@dataclass(frozen=True)
class AFRelayResult:
    direct_rate: float
    relay_rate: float
    total_rate: float
    gamma_is: float  # UE -> MBS
    gamma_ij: float  # UE -> DBS
    gamma_sj: float  # DBS -> MBS


class ChannelModel:
    """
    Propagation model for drone (air-to-ground) and ground links.

    Air-to-ground links use the probabilistic LoS/NLoS model: the LoS
    probability is a logistic function of the elevation angle and the
    expected path loss mixes free-space loss plus the LoS and NLoS excess
    losses. Ground links use a distance power law ``δ·d^-κ`` on the
    horizontal distance.
    """

    def __init__(
        self,
        carrier_frequency: float = 2.4e9,
        b1: float = 9.61,
        b2: float = 0.21,
        zeta_los_db: float = 1.0,
        zeta_nlos_db: float = 20.0,
        noise_psd_dbm_hz: float = -174.0,
        ground_reference_gain: Optional[float] = None,
        ground_path_loss_exponent: float = 2.0,
        min_distance: float = 1.0
    ):
        """
        Initialize channel model.

        Args:
            carrier_frequency: Carrier frequency in Hz
            b1: Logistic LoS coefficient B1
            b2: Logistic LoS coefficient B2
            zeta_los_db: Excess path loss under LoS in dB
            zeta_nlos_db: Excess path loss under NLoS in dB
            noise_psd_dbm_hz: Thermal noise power spectral density in dBm/Hz
            ground_reference_gain: δ, the ground link gain at 1 m. Defaults to
                the free-space gain at 1 m for the carrier frequency
            ground_path_loss_exponent: κ for ground links
            min_distance: Distances are floored at this value (meters)
        """
        if carrier_frequency <= 0:
            raise ValueError(f"carrier_frequency must be positive, got {carrier_frequency}")
        if min_distance <= 0:
            raise ValueError(f"min_distance must be positive, got {min_distance}")
        self.carrier_frequency = carrier_frequency
        self.b1 = b1
        self.b2 = b2
        self.zeta_los_db = zeta_los_db
        self.zeta_nlos_db = zeta_nlos_db
        self.noise_psd_dbm_hz = noise_psd_dbm_hz
        if ground_reference_gain is None:
            ground_reference_gain = (SPEED_OF_LIGHT / (4 * np.pi * carrier_frequency)) ** 2
        self.ground_reference_gain = ground_reference_gain
        self.ground_path_loss_exponent = ground_path_loss_exponent
        self.min_distance = min_distance

    # ------------------------------------------------------------------
    # Scalar helpers (array friendly)
    # ------------------------------------------------------------------
    def free_space_path_loss_db(self, distance):
        distance = np.maximum(distance, self.min_distance)
        return 20 * np.log10(4 * np.pi * self.carrier_frequency * distance / SPEED_OF_LIGHT)

    def elevation_angle(self, height_difference, horizontal_distance):
        """Elevation angle in degrees; atan2 keeps co-located points at 0."""
        return np.degrees(np.arctan2(height_difference, horizontal_distance))

    def los_probability(self, elevation_deg):
        return 1.0 / (1.0 + self.b1 * np.exp(-self.b2 * (elevation_deg - self.b1)))

    def noise_power(self, bandwidth: float) -> float:
        """Thermal noise power in Watts over the given bandwidth."""
        return dbm_to_watt(self.noise_psd_dbm_hz) * bandwidth

    def snr(self, tx_power, channel_gain, bandwidth):
        return tx_power * channel_gain / self.noise_power(bandwidth)

    def sinr(self, signal_power, interference_power, bandwidth):
        return signal_power / (interference_power + self.noise_power(bandwidth))

    # ------------------------------------------------------------------
    # Link models
    # ------------------------------------------------------------------
    def a2g_channel(self, drone_position: np.ndarray, user_position: np.ndarray) -> A2GChannelResult:
        """
        Air-to-ground channel between a drone and a user.

        Args:
            drone_position: Drone position [x, y, z]
            user_position: User position [x, y, z]

        Returns:
            Path loss, gain, elevation and LoS/NLoS probabilities
        """
        path_loss, elevation, p_los = self._a2g_path_loss(
            np.asarray(drone_position, dtype=float)[np.newaxis, :],
            np.asarray(user_position, dtype=float)[np.newaxis, :]
        )
        path_loss = float(path_loss[0, 0])
        return A2GChannelResult(
            path_loss_db=path_loss,
            channel_gain=float(db_to_linear(-path_loss)),
            elevation_angle=float(elevation[0, 0]),
            los_probability=float(p_los[0, 0]),
            nlos_probability=float(1.0 - p_los[0, 0])
        )

    def _a2g_path_loss(self, drone_positions: np.ndarray, user_positions: np.ndarray):
        """Expected A2G path loss matrix of shape (num_users, num_drones)."""
        horizontal = cdist(user_positions[:, :2], drone_positions[:, :2])
        height = drone_positions[np.newaxis, :, 2] - user_positions[:, np.newaxis, 2]
        distance = np.sqrt(horizontal ** 2 + height ** 2)

        elevation = self.elevation_angle(height, horizontal)
        p_los = self.los_probability(elevation)
        fspl = self.free_space_path_loss_db(distance)
        path_loss = p_los * (fspl + self.zeta_los_db) + (1.0 - p_los) * (fspl + self.zeta_nlos_db)
        return path_loss, elevation, p_los

    def ground_gain(self, station_position: np.ndarray, user_position: np.ndarray) -> float:
        """UE to ground station gain δ·d^-κ on the horizontal distance."""
        d = np.linalg.norm(np.asarray(user_position, dtype=float)[:2] - np.asarray(station_position, dtype=float)[:2])
        d = max(d, self.min_distance)
        return float(self.ground_reference_gain * d ** (-self.ground_path_loss_exponent))

    def backhaul_gain(self, drone_position: np.ndarray, ground_position: np.ndarray) -> float:
        """Drone to ground station gain, line of sight assumed."""
        d = np.linalg.norm(np.asarray(drone_position, dtype=float) - np.asarray(ground_position, dtype=float))
        path_loss = self.free_space_path_loss_db(d) + self.zeta_los_db
        return float(db_to_linear(-path_loss))

    def gain(self, station: 'BaseStation', user: 'MobileUser', position: np.ndarray = None) -> float:
        """
        Channel gain between a station and a user.

        Args:
            station: Serving station
            user: Mobile user
            position: Candidate station position; defaults to the current one
        """
        origin = station.position if position is None else np.asarray(position, dtype=float)
        if station.kind is StationKind.DRONE:
            return self.a2g_channel(origin, user.position).channel_gain
        return self.ground_gain(origin, user.position)

    def gain_matrix(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> np.ndarray:
        """
        Channel gains for every (user, station) pair.

        Args:
            users: Users (rows)
            stations: Stations (columns)
            positions: Optional (num_stations, 3) override of station positions

        Returns:
            Gain matrix of shape (num_users, num_stations)
        """
        pos = station_positions(stations) if positions is None else np.asarray(positions, dtype=float)
        if pos.shape != (len(stations), 3):
            raise ValueError(f"positions must have shape ({len(stations)}, 3), got {pos.shape}")
        ue = user_positions(list(users))
        gains = np.zeros((len(ue), len(stations)))
        if len(ue) == 0 or len(stations) == 0:
            return gains

        drone_mask = np.array([s.kind is StationKind.DRONE for s in stations])
        if np.any(drone_mask):
            path_loss, _, _ = self._a2g_path_loss(pos[drone_mask], ue)
            gains[:, drone_mask] = db_to_linear(-path_loss)
        if np.any(~drone_mask):
            d = np.maximum(cdist(ue[:, :2], pos[~drone_mask, :2]), self.min_distance)
            gains[:, ~drone_mask] = self.ground_reference_gain * d ** (-self.ground_path_loss_exponent)
        return gains

    def __repr__(self) -> str:
        return (f"ChannelModel(fc={self.carrier_frequency:.3g}Hz, B1={self.b1}, B2={self.b2}, "
                f"zeta=({self.zeta_los_db}, {self.zeta_nlos_db})dB)")


class RateEvaluator:
    """
    Shannon-capacity rate ``B·log2(1 + SNR)`` for (user, station) pairs.

    Downlink rates use the station's transmit power; uplink rates use the
    user's. With ``with_interference`` the downlink SNR becomes an SINR
    against the summed received power of every other station.
    """

    def __init__(self, channel: ChannelModel = None, uplink: bool = False, with_interference: bool = False):
        if uplink and with_interference:
            raise ValueError("Interference is only modelled for downlink rates")
        self.channel = channel or ChannelModel()
        self.uplink = uplink
        self.with_interference = with_interference

    @staticmethod
    def shannon_rate(bandwidth, snr):
        return bandwidth * np.log2(1.0 + snr)

    def rate_matrix(
        self,
        users: Sequence['MobileUser'],
        stations: Sequence['BaseStation'],
        positions: np.ndarray = None
    ) -> np.ndarray:
        """
        Achievable rates in bps for every (user, station) pair.

        Args:
            users: Users (rows)
            stations: Stations (columns)
            positions: Optional (num_stations, 3) override of station positions

        Returns:
            Rate matrix of shape (num_users, num_stations)
        """
        gains = self.channel.gain_matrix(users, stations, positions)
        if gains.size == 0:
            return gains
        bandwidth = np.array([s.bandwidth for s in stations])
        noise = self.channel.noise_power(bandwidth)[np.newaxis, :]

        if self.uplink:
            tx = np.array([u.tx_power for u in users])[:, np.newaxis]
            received = tx * gains
        else:
            tx = np.array([s.transmit_power for s in stations])[np.newaxis, :]
            received = tx * gains

        if self.with_interference:
            interference = received.sum(axis=1, keepdims=True) - received
            snr = received / (interference + noise)
        else:
            snr = received / noise
        return self.shannon_rate(bandwidth[np.newaxis, :], snr)

    def achievable_rate(self, user: 'MobileUser', station: 'BaseStation', position: np.ndarray = None) -> float:
        """Rate for a single pair, ignoring interference."""
        tx_power = user.tx_power if self.uplink else station.transmit_power
        gain = self.channel.gain(station, user, position)
        snr = self.channel.snr(tx_power, gain, station.bandwidth)
        return float(self.shannon_rate(station.bandwidth, snr))

    def af_relay_rate(
        self,
        user: 'MobileUser',
        drone: 'DroneBaseStation',
        ground: 'GroundBaseStation',
        ue_tx_power: float = 1.0,
        dbs_tx_power: float = 5.0,
        bandwidth: float = None
    ) -> AFRelayResult:
        """
        Amplify-and-forward rate of the UE -> DBS -> MBS path versus the direct link.

        The relay path spends two slots, hence the halved bandwidth.
        """
        bandwidth = drone.bandwidth if bandwidth is None else bandwidth
        ch = self.channel
        gamma_ij = ch.snr(ue_tx_power, ch.a2g_channel(drone.position, user.position).channel_gain, bandwidth)
        gamma_sj = ch.snr(dbs_tx_power, ch.backhaul_gain(drone.position, ground.position), bandwidth)
        gamma_is = ch.snr(ue_tx_power, ch.ground_gain(ground.position, user.position), bandwidth)

        direct = float(self.shannon_rate(bandwidth, gamma_is))
        relay = float(self.shannon_rate(bandwidth / 2.0, (gamma_is + gamma_ij * gamma_sj) / (1 + gamma_ij + gamma_sj)))
        return AFRelayResult(direct, relay, max(direct, relay), float(gamma_is), float(gamma_ij), float(gamma_sj))

    def best_relay(
        self,
        user: 'MobileUser',
        drones: Sequence['DroneBaseStation'],
        ground: 'GroundBaseStation',
        ue_tx_power: float = 1.0,
        dbs_tx_power: float = 5.0
    ):
        """
        Pick the drone whose relay path beats the direct link by the widest margin.

        Returns:
            (drone or None, rate) where None means transmit directly
        """
        bandwidth = ground.bandwidth
        gain = self.channel.ground_gain(ground.position, user.position)
        direct = float(self.shannon_rate(bandwidth, self.channel.snr(ue_tx_power, gain, bandwidth)))
        best_drone, best_rate = None, direct
        for drone in drones:
            result = self.af_relay_rate(user, drone, ground, ue_tx_power, dbs_tx_power, bandwidth)
            if result.relay_rate > best_rate:
                best_drone, best_rate = drone, result.relay_rate
        return best_drone, best_rate
