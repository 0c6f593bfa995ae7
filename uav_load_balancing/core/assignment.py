"""User-to-station assignment helpers.

Two representations are used throughout the package:

* fractional: float array ``x`` of shape (num_users, num_stations) whose rows
  sum to one, ``x[i, j]`` being the share of user i served by station j;
* binary: int array of length num_users holding the serving station index of
  each user, ``UNASSIGNED`` (-1) where a user has no station.
"""

from typing import Dict, List, Sequence, TYPE_CHECKING

import numpy as np
from scipy.spatial.distance import cdist

from .base_station import station_positions
from .mobile_user import user_positions

if TYPE_CHECKING:
    from .base_station import BaseStation
    from .mobile_user import MobileUser

UNASSIGNED = -1


def binarize(fractional: np.ndarray) -> np.ndarray:
    """Assign each user to the station holding its largest weight (first on ties)."""
    fractional = np.asarray(fractional, dtype=float)
    if fractional.ndim != 2:
        raise ValueError(f"fractional assignment must be 2D, got shape {fractional.shape}")
    if fractional.shape[1] == 0:
        return np.full(fractional.shape[0], UNASSIGNED, dtype=int)
    return np.argmax(fractional, axis=1).astype(int)


def one_hot(binary: np.ndarray, num_stations: int) -> np.ndarray:
    """Fractional matrix equivalent of a binary assignment."""
    binary = np.asarray(binary, dtype=int)
    x = np.zeros((len(binary), num_stations))
    assigned = binary != UNASSIGNED
    x[np.flatnonzero(assigned), binary[assigned]] = 1.0
    return x


def station_counts(binary: np.ndarray, num_stations: int) -> np.ndarray:
    """Number of users served by each station."""
    binary = np.asarray(binary, dtype=int)
    return np.bincount(binary[binary != UNASSIGNED], minlength=num_stations)[:num_stations]


def station_sets(binary: np.ndarray, num_stations: int) -> List[List[int]]:
    """User indices served by each station."""
    sets: List[List[int]] = [[] for _ in range(num_stations)]
    for i, j in enumerate(np.asarray(binary, dtype=int)):
        if j != UNASSIGNED:
            sets[j].append(i)
    return sets


def to_id_mapping(
    binary: np.ndarray,
    users: Sequence['MobileUser'],
    stations: Sequence['BaseStation']
) -> Dict[str, List[str]]:
    """Station id -> list of user ids, every station present."""
    mapping = {s.station_id: [] for s in stations}
    for user, j in zip(users, np.asarray(binary, dtype=int)):
        if j != UNASSIGNED:
            mapping[stations[j].station_id].append(user.user_id)
    return mapping


def coverage_mask(
    users: Sequence['MobileUser'],
    stations: Sequence['BaseStation'],
    positions: np.ndarray = None
) -> np.ndarray:
    """Boolean (num_users, num_stations) matrix of in-range pairs."""
    pos = station_positions(stations) if positions is None else np.asarray(positions, dtype=float)
    ue = user_positions(list(users))
    if len(ue) == 0 or len(stations) == 0:
        return np.zeros((len(ue), len(stations)), dtype=bool)
    radius = np.array([s.coverage_radius for s in stations])
    return cdist(ue, pos) <= radius[np.newaxis, :]


def candidate_mask(coverage: np.ndarray) -> np.ndarray:
    """In-range stations per user; users covered by nobody may use any station."""
    mask = np.array(coverage, dtype=bool)
    uncovered = ~mask.any(axis=1)
    mask[uncovered, :] = True
    return mask


def nearest_station_assignment(user_pos: np.ndarray, positions: np.ndarray) -> np.ndarray:
    """Each user to the closest station (3D distance), first index on ties."""
    user_pos = np.asarray(user_pos, dtype=float)
    positions = np.asarray(positions, dtype=float)
    if len(positions) == 0:
        return np.full(len(user_pos), UNASSIGNED, dtype=int)
    if len(user_pos) == 0:
        return np.zeros(0, dtype=int)
    return np.argmin(cdist(user_pos, positions), axis=1).astype(int)


def first_fit_assignment(num_users: int, capacities: np.ndarray) -> np.ndarray:
    """
    Capacity-respecting initial assignment.

    Each user goes to the first station with spare capacity; once every
    station is full the remaining users go to the least-loaded station.
    """
    capacities = np.asarray(capacities, dtype=int)
    if len(capacities) == 0:
        return np.full(num_users, UNASSIGNED, dtype=int)
    counts = np.zeros(len(capacities), dtype=int)
    binary = np.empty(num_users, dtype=int)
    for i in range(num_users):
        open_stations = np.flatnonzero(counts < capacities)
        j = int(open_stations[0]) if len(open_stations) else int(np.argmin(counts))
        binary[i] = j
        counts[j] += 1
    return binary
