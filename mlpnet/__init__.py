"""mlpnet public API."""

from .core import transfer  # noqa: F401
from .core import types  # noqa: F401
from .core.architecture import load_architecture, save_architecture
from .core.layers import Layer, LayerConfiguration
from .core.network import Network, NetworkFactory
from .core.types import (
    ErrorGradient,
    LayerType,
    TrainingExample,
    TrainingProgress,
    TrainingResult,
    TrainingStop,
)
from .errors import ConfigurationError, InvalidOperationError, NumericDivergenceError
from .training.gradient import GradientEngine
from .training.optimizer import DescentConfig, MomentumDescent
from .training.pipelines import load_preset, presets, run_pipeline

__all__ = [
    "ConfigurationError",
    "DescentConfig",
    "ErrorGradient",
    "GradientEngine",
    "InvalidOperationError",
    "Layer",
    "LayerConfiguration",
    "LayerType",
    "MomentumDescent",
    "Network",
    "NetworkFactory",
    "NumericDivergenceError",
    "TrainingExample",
    "TrainingProgress",
    "TrainingResult",
    "TrainingStop",
    "load_architecture",
    "load_preset",
    "presets",
    "run_pipeline",
    "save_architecture",
    "transfer",
    "types",
]
