"""
Air-Ground Collaborative Traffic Load Balancing

This package balances mobile-user traffic across drone and ground base
stations. It provides an air-to-ground channel model, α-fair traffic load
evaluation and game-theoretic solvers: P-SCA user association, a
Gibbs-sampling potential game for drone placement, their alternating
combination (AGC-TLB), a Stackelberg leader-follower game, Shapley value
cooperation and a VCG auction, next to heuristic association baselines
for comparison.
"""

__version__ = "0.1.0"

from .core.mobile_user import MobileUser
from .core.base_station import BaseStation, DroneBaseStation, GroundBaseStation
from .core.channel import ChannelModel, RateEvaluator
from .core.fairness import AlphaFairnessModel, FairnessPolicy
from .config import (
    AGCTLBConfig, DeploymentRegion, PotentialGameConfig, PSCAConfig, ShapleyConfig, StackelbergConfig
)
from .optimization.psca import PSCASolver
from .optimization.potential_game import PotentialGameSolver
from .optimization.agctlb import AGCTLBCoordinator
from .optimization.shapley import ShapleyCooperativeSolver
from .optimization.vcg import VCGAuctionSolver
from .optimization.stackelberg import StackelbergSolver
from .optimization.baselines import BaselineAssigner
from .optimization.optimizer import AlgorithmType, LoadBalancingOptimizer, balance_load

__all__ = [
    "MobileUser",
    "BaseStation",
    "DroneBaseStation",
    "GroundBaseStation",
    "ChannelModel",
    "RateEvaluator",
    "AlphaFairnessModel",
    "FairnessPolicy",
    "AGCTLBConfig",
    "DeploymentRegion",
    "PotentialGameConfig",
    "PSCAConfig",
    "ShapleyConfig",
    "StackelbergConfig",
    "PSCASolver",
    "PotentialGameSolver",
    "AGCTLBCoordinator",
    "ShapleyCooperativeSolver",
    "VCGAuctionSolver",
    "StackelbergSolver",
    "BaselineAssigner",
    "AlgorithmType",
    "LoadBalancingOptimizer",
    "balance_load",
]
