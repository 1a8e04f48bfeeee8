"""Fully connected network layers."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from ..errors import ConfigurationError, InvalidOperationError, require_finite_nonnegative
from .transfer import InputPlaceholder, TransferFunction
from .types import Array, BackpropagationResult, FeedforwardResult, LayerType

DEFAULT_FLAT_SPOT_ELIMINATION = 0.1


@dataclass(frozen=True)
class LayerConfiguration:
    """Neuron count and transfer function of a layer yet to be created."""

    neuron_count: int
    layer_type: LayerType
    transfer: TransferFunction = field(default_factory=InputPlaceholder)

    def __post_init__(self) -> None:
        if int(self.neuron_count) <= 0:
            raise ConfigurationError(
                f"A layer needs at least one neuron, got {self.neuron_count}"
            )
        if self.layer_type is LayerType.INPUT and not isinstance(self.transfer, InputPlaceholder):
            raise ConfigurationError("Input layers always use the input placeholder transfer")

    @classmethod
    def for_input(cls, neuron_count: int) -> "LayerConfiguration":
        return cls(int(neuron_count), LayerType.INPUT, InputPlaceholder())

    @classmethod
    def for_hidden(cls, neuron_count: int, transfer: TransferFunction) -> "LayerConfiguration":
        return cls(int(neuron_count), LayerType.HIDDEN, transfer)

    @classmethod
    def for_output(cls, neuron_count: int, transfer: TransferFunction) -> "LayerConfiguration":
        return cls(int(neuron_count), LayerType.OUTPUT, transfer)


class Layer:
    """A layer of neurons fully connected to the previous layer's outputs.

    The weight matrix has one row per neuron and one column per neuron of the
    preceding layer. Input layers carry neither weights nor bias and simply
    pass their argument through.
    """

    def __init__(
        self,
        layer_type: LayerType,
        transfer: TransferFunction,
        weights: Array | None = None,
        bias: Array | None = None,
        *,
        neuron_count: int | None = None,
        index: int = 0,
    ) -> None:
        self.layer_type = layer_type
        self.transfer = transfer
        self.index = int(index)
        if layer_type is LayerType.INPUT:
            if neuron_count is None:
                raise ConfigurationError("Input layers require an explicit neuron count")
            self.weights = None
            self.bias = None
            self._neurons = int(neuron_count)
            self._inputs = int(neuron_count)
            return

        if weights is None or bias is None:
            raise ConfigurationError(f"{layer_type.value} layers require weights and a bias")
        weights = np.array(weights, dtype=np.float64)
        bias = np.array(bias, dtype=np.float64).reshape(-1)
        if weights.ndim != 2:
            raise ConfigurationError(f"Weights must be a matrix, got shape {weights.shape}")
        if bias.shape[0] != weights.shape[0]:
            raise ConfigurationError(
                f"Bias length {bias.shape[0]} does not match {weights.shape[0]} neurons"
            )
        self.weights = weights
        self.bias = bias
        self._neurons, self._inputs = weights.shape

    @classmethod
    def input_layer(cls, neuron_count: int) -> "Layer":
        return cls(LayerType.INPUT, InputPlaceholder(), neuron_count=neuron_count, index=0)

    @property
    def neuron_count(self) -> int:
        return self._neurons

    @property
    def input_count(self) -> int:
        return self._inputs

    def __repr__(self) -> str:
        return (
            f"Layer(index={self.index}, type={self.layer_type.value}, "
            f"shape=({self._neurons}, {self._inputs}), transfer={self.transfer.name})"
        )

    def feedforward(self, activations: Array) -> FeedforwardResult:
        """Return ``z = W·activations + b`` and ``a = transfer(z)``."""

        if self.layer_type is LayerType.INPUT:
            return FeedforwardResult(layer=self, weighted_inputs=activations, output=activations)

        z = self.weights @ activations + self.bias
        a = self.transfer.apply(z)
        return FeedforwardResult(layer=self, weighted_inputs=z, output=a)

    def backpropagate(
        self,
        feedforward_result: FeedforwardResult,
        output_errors: Array,
        next_layer: "Layer",
        *,
        flat_spot_elimination: float = DEFAULT_FLAT_SPOT_ELIMINATION,
    ) -> BackpropagationResult:
        """Propagate ``next_layer``'s errors back through this hidden layer."""

        if self.layer_type is not LayerType.HIDDEN:
            raise InvalidOperationError(
                f"Backpropagation is only allowed on hidden layers, not on {self.layer_type.value} layers"
            )
        if next_layer.weights is None or next_layer.weights.shape[1] != self._neurons:
            raise InvalidOperationError(f"{next_layer!r} is not connected to {self!r}")

        gradient = (
            self.transfer.derivative(
                feedforward_result.weighted_inputs, feedforward_result.output
            )
            + flat_spot_elimination
        )
        weight_errors = (next_layer.weights.T @ output_errors) * gradient

        # bias units are unaffected by the transfer function, hence b' = 1
        bias_error = float(next_layer.bias @ output_errors) * 1.0
        return BackpropagationResult(weight_errors=weight_errors, bias_error=bias_error)


def validate_flat_spot_elimination(value: float) -> float:
    return require_finite_nonnegative("flat_spot_elimination", value)


__all__ = [
    "DEFAULT_FLAT_SPOT_ELIMINATION",
    "Layer",
    "LayerConfiguration",
    "validate_flat_spot_elimination",
]
