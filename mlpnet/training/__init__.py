"""Cost functions, gradient engine, optimizer and run pipelines."""

from .costs import REGISTRY as COSTS
from .costs import CostFunction, CostRegistry, Logistic, SumSquaredError
from .gradient import GradientEngine
from .optimizer import DescentConfig, MomentumDescent

__all__ = [
    "COSTS",
    "CostFunction",
    "CostRegistry",
    "DescentConfig",
    "GradientEngine",
    "Logistic",
    "MomentumDescent",
    "SumSquaredError",
]
