"""Transfer (activation) functions for mlpnet layers.

Every transfer function exposes ``apply(z)`` and ``derivative(z, activations)``.
Both operate elementwise on one-dimensional arrays. ``derivative`` receives the
activations obtained in the forward pass as well, since some variants (tanh)
are cheaper to differentiate from their output than from their input.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Iterable, Protocol

import numpy as np

from ..errors import ConfigurationError, InvalidOperationError
from .types import Array


class TransferFunction(Protocol):
    """Protocol implemented by all transfer functions."""

    name: str

    def apply(self, z: Array) -> Array:
        """Return the activation of every element of ``z``."""

    def derivative(self, z: Array, activations: Array) -> Array:
        """Return the derivative evaluated at every element of ``z``."""


@dataclass(frozen=True)
class InputPlaceholder:
    """Pass-through used by the input layer; never differentiated."""

    name: str = "input"

    def apply(self, z: Array) -> Array:
        return z

    def derivative(self, z: Array, activations: Array) -> Array:
        raise InvalidOperationError(
            "The transfer function of the input layer cannot be differentiated"
        )


@dataclass(frozen=True)
class Identity:
    name: str = "identity"

    def apply(self, z: Array) -> Array:
        return np.array(z, dtype=np.float64)

    def derivative(self, z: Array, activations: Array) -> Array:
        return np.ones_like(z, dtype=np.float64)


@dataclass(frozen=True)
class Linear:
    """Scaled identity ``slope * z``."""

    slope: float = 1.0
    name: str = "linear"

    def apply(self, z: Array) -> Array:
        return self.slope * np.asarray(z, dtype=np.float64)

    def derivative(self, z: Array, activations: Array) -> Array:
        return np.full(np.shape(z), self.slope, dtype=np.float64)


@dataclass(frozen=True)
class Sigmoid:
    name: str = "sigmoid"

    def apply(self, z: Array) -> Array:
        # exp(-z) overflows to inf for very negative z, which correctly yields 0
        with np.errstate(over="ignore"):
            return 1.0 / (1.0 + np.exp(-np.asarray(z, dtype=np.float64)))

    def derivative(self, z: Array, activations: Array) -> Array:
        s = self.apply(z)
        return s * (1.0 - s)


@dataclass(frozen=True)
class Tanh:
    name: str = "tanh"

    def apply(self, z: Array) -> Array:
        return np.tanh(np.asarray(z, dtype=np.float64))

    def derivative(self, z: Array, activations: Array) -> Array:
        a = np.asarray(activations, dtype=np.float64)
        return 1.0 - a * a


@dataclass(frozen=True)
class Rectified:
    name: str = "rectified"

    def apply(self, z: Array) -> Array:
        return np.maximum(np.asarray(z, dtype=np.float64), 0.0)

    def derivative(self, z: Array, activations: Array) -> Array:
        return (np.asarray(z) >= 0).astype(np.float64)


@dataclass(frozen=True)
class Softplus:
    """``log(1 + e^z)``, mapping onto ``[0, inf)``."""

    name: str = "softplus"

    def apply(self, z: Array) -> Array:
        return np.logaddexp(0.0, np.asarray(z, dtype=np.float64))

    def derivative(self, z: Array, activations: Array) -> Array:
        return Sigmoid().apply(z)


@dataclass(frozen=True)
class Step:
    """Heaviside step; only usable as the activation of the output layer.

    ``epsilon`` pulls the two output levels towards the centre so that the
    outputs are ``1 - epsilon`` and ``epsilon`` instead of exactly one and zero.
    """

    epsilon: float = 0.0
    name: str = "step"

    def __post_init__(self) -> None:
        if not 0.0 <= self.epsilon < 0.5:
            raise ConfigurationError(f"Step epsilon must be in [0, 0.5), got {self.epsilon}")

    def apply(self, z: Array) -> Array:
        return np.where(np.asarray(z) >= 0, 1.0 - self.epsilon, self.epsilon)

    def derivative(self, z: Array, activations: Array) -> Array:
        raise InvalidOperationError(
            "The step transfer function is not differentiable and cannot be used in a hidden layer"
        )


_REGISTRY: Dict[str, Callable[..., TransferFunction]] = {
    "identity": Identity,
    "linear": Linear,
    "sigmoid": Sigmoid,
    "tanh": Tanh,
    "rectified": Rectified,
    "relu": Rectified,
    "softplus": Softplus,
    "step": Step,
}


def get_transfer(name: str, **options: float) -> TransferFunction:
    """Return a transfer function instance by registry name."""

    key = str(name).lower()
    if key not in _REGISTRY:
        available = ", ".join(transfer_names())
        raise ConfigurationError(
            f"Unknown transfer function {name!r}. Available transfer functions: {available}"
        )
    try:
        return _REGISTRY[key](**options)
    except TypeError as exc:
        raise ConfigurationError(f"Invalid options for transfer {name!r}: {options}") from exc


def transfer_names() -> Iterable[str]:
    return sorted(_REGISTRY)


__all__ = [
    "Identity",
    "InputPlaceholder",
    "Linear",
    "Rectified",
    "Sigmoid",
    "Softplus",
    "Step",
    "Tanh",
    "TransferFunction",
    "get_transfer",
    "transfer_names",
]
