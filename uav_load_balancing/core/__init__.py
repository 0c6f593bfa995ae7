"""Network entities, channel model and load/fairness evaluation."""

from .mobile_user import MobileUser
from .base_station import BaseStation, DroneBaseStation, GroundBaseStation, StationKind
from .channel import ChannelModel, RateEvaluator
from .fairness import AlphaFairnessModel, FairnessPolicy, LoadBalancingResult

__all__ = [
    "MobileUser",
    "BaseStation",
    "DroneBaseStation",
    "GroundBaseStation",
    "StationKind",
    "ChannelModel",
    "RateEvaluator",
    "AlphaFairnessModel",
    "FairnessPolicy",
    "LoadBalancingResult",
]
