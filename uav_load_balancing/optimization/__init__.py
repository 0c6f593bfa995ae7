"""Association, placement and mechanism-design solvers."""

from .psca import PSCASolver, PSCAResult
from .potential_game import PotentialGameSolver, GameState
from .agctlb import AGCTLBCoordinator, ConstraintViolations, Solution
from .shapley import ShapleyCooperativeSolver, ShapleyResult
from .vcg import VCGAuctionSolver, AuctionResult
from .stackelberg import StackelbergSolver, StackelbergResult
from .baselines import BaselineAssigner, load_balance_index
from .optimizer import AlgorithmType, LoadBalancingOptimizer, LoadBalancingOutcome

__all__ = [
    "PSCASolver",
    "PSCAResult",
    "PotentialGameSolver",
    "GameState",
    "AGCTLBCoordinator",
    "ConstraintViolations",
    "Solution",
    "ShapleyCooperativeSolver",
    "ShapleyResult",
    "VCGAuctionSolver",
    "AuctionResult",
    "StackelbergSolver",
    "StackelbergResult",
    "BaselineAssigner",
    "load_balance_index",
    "AlgorithmType",
    "LoadBalancingOptimizer",
    "LoadBalancingOutcome",
]
