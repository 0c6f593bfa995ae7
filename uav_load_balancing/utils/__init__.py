"""Utility functions for the UAV load balancing package."""

from typing import Optional, Union

import numpy as np
from scipy.special import logsumexp

SeedLike = Optional[Union[int, np.random.Generator]]


def dbm_to_watt(power_dbm):
    """Convert power from dBm to Watts.

    Args:
        power_dbm: Power in dBm

    Returns:
        Power in Watts
    """
    return 10 ** ((power_dbm - 30) / 10)


def watt_to_dbm(power_watt):
    """Convert power from Watts to dBm.

    Args:
        power_watt: Power in Watts

    Returns:
        Power in dBm
    """
    return 10 * np.log10(power_watt) + 30


def db_to_linear(value_db):
    """Convert a dB ratio to linear scale."""
    return 10 ** (np.asarray(value_db, dtype=float) / 10)


def make_rng(seed: SeedLike = None) -> np.random.Generator:
    """Build a random generator from a seed or pass an existing one through.

    Args:
        seed: Integer seed, an existing Generator, or None for fresh entropy

    Returns:
        numpy Generator owned by the caller
    """
    if isinstance(seed, np.random.Generator):
        return seed
    return np.random.default_rng(seed)


def boltzmann_probabilities(costs, inverse_temperature: float) -> np.ndarray:
    """Gibbs distribution Pr(k) ∝ exp(-ψ·C_k) computed in log space.

    Infinite costs get probability zero. If every cost is infinite the
    distribution is undefined and an array of NaNs is returned; callers
    decide how to handle it.

    Args:
        costs: Candidate costs
        inverse_temperature: ψ >= 0

    Returns:
        Probability vector with the same length as costs
    """
    costs = np.asarray(costs, dtype=float)
    if inverse_temperature < 0:
        raise ValueError(f"inverse_temperature must be non-negative, got {inverse_temperature}")
    finite = np.isfinite(costs)
    if not np.any(finite):
        return np.full(costs.shape, np.nan)
    logits = np.full(costs.shape, -np.inf)
    logits[finite] = -inverse_temperature * costs[finite]
    return np.exp(logits - logsumexp(logits[finite]))


def vector_to_str(vector, precision=3):
    """Convert vector to formatted string representation.

    Args:
        vector: Input vector
        precision: Number of decimal places

    Returns:
        String representation of vector
    """
    if np.isscalar(vector):
        return f"{vector:.{precision}f}"
    return "[" + ", ".join([f"{x:.{precision}f}" for x in vector]) + "]"
