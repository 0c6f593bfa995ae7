# config.py
"""Solver configuration blocks.

Every solver receives its parameters explicitly through one of these frozen
dataclasses; nothing is read from global state. Defaults reproduce the
reference parameterisation of the AGC-TLB experiments.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from .core.fairness import FairnessPolicy


# -----------------------------
# Deployment region F
# -----------------------------
@dataclass(frozen=True)
class DeploymentRegion:
    x_min: float = 0.0
    x_max: float = 1000.0
    y_min: float = 0.0
    y_max: float = 1000.0
    h_min: float = 50.0
    h_max: float = 300.0

    def __post_init__(self):
        if self.x_min > self.x_max or self.y_min > self.y_max or self.h_min > self.h_max:
            raise ValueError(f"Malformed deployment region: {self}")

    @property
    def lower(self) -> np.ndarray:
        return np.array([self.x_min, self.y_min, self.h_min])

    @property
    def upper(self) -> np.ndarray:
        return np.array([self.x_max, self.y_max, self.h_max])

    def contains(self, position, tol: float = 1e-9) -> bool:
        """Whether a 3D position lies inside [x]×[y]×[h] (inclusive)."""
        p = np.asarray(position, dtype=float)
        return bool(np.all(p >= self.lower - tol) and np.all(p <= self.upper + tol))

    def clip(self, position) -> np.ndarray:
        return np.clip(np.asarray(position, dtype=float), self.lower, self.upper)

    def grid_axes(self, step_x: float, step_y: float, step_h: float) -> Tuple[np.ndarray, ...]:
        """Discrete coordinates along each axis, starting at the lower corner."""
        if step_x <= 0 or step_y <= 0 or step_h <= 0:
            raise ValueError("Grid steps must be positive")
        # Small epsilon so the upper bound is included when it is on the lattice
        xs = np.arange(self.x_min, self.x_max + 1e-9, step_x)
        ys = np.arange(self.y_min, self.y_max + 1e-9, step_y)
        hs = np.arange(self.h_min, self.h_max + 1e-9, step_h)
        return xs, ys, hs

    def grid_points(self, step_x: float, step_y: float, step_h: float) -> np.ndarray:
        """All lattice points of the region as an (N, 3) array."""
        xs, ys, hs = self.grid_axes(step_x, step_y, step_h)
        xx, yy, hh = np.meshgrid(xs, ys, hs, indexing="ij")
        return np.stack([xx.ravel(), yy.ravel(), hh.ravel()], axis=1)


# -----------------------------
# Solver blocks
# -----------------------------
@dataclass(frozen=True)
class PSCAConfig:
    initial_lambda: float = 1.0
    lambda_scaling: float = 0.5
    min_lambda: float = 1e-6
    tolerance: float = 1e-6
    max_outer_iterations: int = 50
    max_inner_iterations: int = 100
    # weight put on the primary station of each candidate distribution
    primary_weights: Tuple[float, ...] = (1.0, 0.8, 0.6)
    sum_tolerance: float = 1e-6

    def __post_init__(self):
        if not 0 < self.lambda_scaling < 1:
            raise ValueError(f"lambda_scaling must be in (0, 1), got {self.lambda_scaling}")
        if self.initial_lambda <= 0:
            raise ValueError(f"initial_lambda must be positive, got {self.initial_lambda}")
        if not self.primary_weights or any(not 0 < w <= 1 for w in self.primary_weights):
            raise ValueError(f"primary_weights must lie in (0, 1], got {self.primary_weights}")


@dataclass(frozen=True)
class PotentialGameConfig:
    grid_step_x: float = 50.0
    grid_step_y: float = 50.0
    grid_step_h: float = 20.0
    initial_psi: float = 1.0
    psi_increment: float = 0.1
    max_iterations: int = 200
    tolerance: float = 1e-6


@dataclass(frozen=True)
class AGCTLBConfig:
    region: DeploymentRegion = field(default_factory=DeploymentRegion)
    policy: FairnessPolicy = FairnessPolicy.PROPORTIONAL_FAIR
    mean_packet_size: float = 1000.0
    max_load: float = 0.8
    max_outer_iterations: int = 20
    tolerance: float = 1e-6
    psca: PSCAConfig = field(default_factory=PSCAConfig)
    game: PotentialGameConfig = field(default_factory=PotentialGameConfig)


@dataclass(frozen=True)
class ShapleyConfig:
    policy: FairnessPolicy = FairnessPolicy.PROPORTIONAL_FAIR
    mean_packet_size: float = 1000.0
    max_exact_stations: int = 10
    num_samples: int = 2000
    # stands in for +inf when a coalition saturates, keeps marginals finite
    infeasible_value: float = 1e6


@dataclass(frozen=True)
class StackelbergConfig:
    rounds: int = 5
    policy: FairnessPolicy = FairnessPolicy.LATENCY_OPTIMAL
    mean_packet_size: float = 1000.0
    search_step: float = 50.0
    altitude_step: float = 20.0
    tolerance: float = 1e-6
    psca: PSCAConfig = field(default_factory=PSCAConfig)
