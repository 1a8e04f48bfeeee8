"""Core typing contracts for mlpnet."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Mapping

import numpy as np

if TYPE_CHECKING:  # pragma: no cover
    from .layers import Layer

Array = np.ndarray


class LayerType(enum.Enum):
    """Role of a layer within a network."""

    INPUT = "input"
    HIDDEN = "hidden"
    OUTPUT = "output"


class TrainingStop(enum.Enum):
    """Reason a training run terminated."""

    MAXIMUM_ITERATIONS_REACHED = "max_iterations_reached"
    EPSILON_REACHED = "epsilon_reached"
    CANCELLED = "cancelled"


def as_vector(values) -> Array:
    """Return ``values`` as a read-only, one-dimensional float64 array."""

    vector = np.array(values, dtype=np.float64).reshape(-1)
    vector.setflags(write=False)
    return vector


@dataclass(frozen=True, eq=False)
class TrainingExample:
    """An input vector together with the output the network should produce."""

    inputs: Array
    outputs: Array

    def __post_init__(self) -> None:
        object.__setattr__(self, "inputs", as_vector(self.inputs))
        object.__setattr__(self, "outputs", as_vector(self.outputs))


@dataclass(frozen=True, eq=False)
class FeedforwardResult:
    """Weighted input ("Z") and activation ("A") produced by one layer."""

    layer: "Layer"
    weighted_inputs: Array
    output: Array


@dataclass(frozen=True, eq=False)
class BackpropagationResult:
    """Errors propagated back through a hidden layer.

    ``weight_errors`` is the per-neuron error of the hidden layer and becomes
    the ``output_errors`` argument for the preceding layer. ``bias_error`` is
    the error contributed by the next layer's bias unit.
    """

    weight_errors: Array
    bias_error: float


@dataclass(frozen=True, eq=False)
class ErrorGradient:
    """Weight and bias gradient for exactly one layer."""

    weight: Array
    bias: Array

    @classmethod
    def zeros(cls, neurons: int, inputs: int) -> "ErrorGradient":
        return cls(
            weight=np.zeros((neurons, inputs), dtype=np.float64),
            bias=np.zeros(neurons, dtype=np.float64),
        )

    @classmethod
    def zeros_like(cls, layer: "Layer") -> "ErrorGradient":
        """Return the additive identity matching ``layer``'s parameter shapes."""

        return cls.zeros(layer.neuron_count, layer.input_count)

    @property
    def shape(self) -> tuple[int, int]:
        return self.weight.shape  # type: ignore[return-value]

    def __add__(self, other: "ErrorGradient") -> "ErrorGradient":
        if not isinstance(other, ErrorGradient):
            return NotImplemented
        if other.weight.shape != self.weight.shape:
            raise ValueError(
                f"Cannot add gradients of shape {self.weight.shape} and {other.weight.shape}"
            )
        return ErrorGradient(self.weight + other.weight, self.bias + other.bias)

    def __mul__(self, scale: float) -> "ErrorGradient":
        if isinstance(scale, ErrorGradient):
            return NotImplemented
        return ErrorGradient(self.weight * scale, self.bias * scale)

    __rmul__ = __mul__

    def __truediv__(self, scale: float) -> "ErrorGradient":
        return self * (1.0 / scale)


@dataclass(frozen=True, eq=False)
class TrainingResult:
    """Batch cost together with one gradient per trainable layer.

    Gradients are keyed by the layer's index in the network; the input layer
    (index 0) never has an entry.
    """

    cost: float
    gradients: Mapping[int, ErrorGradient] = field(default_factory=dict)


CostGradient = TrainingResult


@dataclass(frozen=True)
class TrainingProgress:
    """Iteration index and cost reported after each committed update."""

    iteration: int
    cost: float


Gradients = Dict[int, ErrorGradient]


__all__ = [
    "Array",
    "BackpropagationResult",
    "CostGradient",
    "ErrorGradient",
    "FeedforwardResult",
    "Gradients",
    "LayerType",
    "TrainingExample",
    "TrainingProgress",
    "TrainingResult",
    "TrainingStop",
    "as_vector",
]
