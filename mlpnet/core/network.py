"""Feed-forward networks and their construction."""

from __future__ import annotations

from typing import Iterator, List, Sequence

import numpy as np

from ..errors import InvalidOperationError
from .layers import Layer, LayerConfiguration
from .types import Array, FeedforwardResult, LayerType, as_vector


class Network:
    """An ordered, fixed sequence of layers from input to output.

    The network owns its layers. Their weights and biases are only ever
    mutated in place by an optimizer; the sequence itself never changes after
    construction.
    """

    def __init__(self, layers: Sequence[Layer]) -> None:
        layers = tuple(layers)
        if len(layers) < 2:
            raise InvalidOperationError("A network requires at least an input and an output layer")
        if layers[0].layer_type is not LayerType.INPUT:
            raise InvalidOperationError("The first layer of a network must be an input layer")
        if layers[-1].layer_type is not LayerType.OUTPUT:
            raise InvalidOperationError("The last layer of a network must be an output layer")
        for idx, layer in enumerate(layers[1:-1], start=1):
            if layer.layer_type is not LayerType.HIDDEN:
                raise InvalidOperationError(
                    f"Layer {idx} must be a hidden layer, got {layer.layer_type.value}"
                )
        for idx in range(1, len(layers)):
            previous, layer = layers[idx - 1], layers[idx]
            if layer.input_count != previous.neuron_count:
                raise InvalidOperationError(
                    f"Layer {idx} expects {layer.input_count} inputs but layer {idx - 1} "
                    f"has {previous.neuron_count} neurons"
                )
            layer.index = idx
        layers[0].index = 0
        self._layers = layers

    # ------------------------------------------------------------------
    # Structure

    def __len__(self) -> int:
        return len(self._layers)

    def __iter__(self) -> Iterator[Layer]:
        return iter(self._layers)

    def __getitem__(self, index: int) -> Layer:
        return self._layers[index]

    @property
    def layers(self) -> tuple[Layer, ...]:
        return self._layers

    @property
    def input_layer(self) -> Layer:
        return self._layers[0]

    @property
    def output_layer(self) -> Layer:
        return self._layers[-1]

    @property
    def hidden_layers(self) -> tuple[Layer, ...]:
        return self._layers[1:-1]

    @property
    def trainable_layers(self) -> tuple[Layer, ...]:
        """Every layer after the input layer."""

        return self._layers[1:]

    @property
    def input_neuron_count(self) -> int:
        return self.input_layer.neuron_count

    @property
    def output_neuron_count(self) -> int:
        return self.output_layer.neuron_count

    @property
    def neuron_counts(self) -> List[int]:
        return [layer.neuron_count for layer in self._layers]

    def parameter_count(self) -> int:
        return int(sum(layer.weights.size + layer.bias.size for layer in self.trainable_layers))

    # ------------------------------------------------------------------
    # Evaluation

    def feedforward(self, inputs: Array) -> List[FeedforwardResult]:
        """Return one :class:`FeedforwardResult` per layer, input layer first."""

        inputs = as_vector(inputs)
        if inputs.shape[0] != self.input_neuron_count:
            raise InvalidOperationError(
                f"Expected {self.input_neuron_count} inputs, got {inputs.shape[0]}"
            )
        results: List[FeedforwardResult] = []
        activations = inputs
        for layer in self._layers:
            result = layer.feedforward(activations)
            results.append(result)
            activations = result.output
        return results

    def evaluate(self, inputs: Array) -> Array:
        """Return the output layer's activations for ``inputs``."""

        return self.feedforward(inputs)[-1].output

    def copy_parameters(self) -> List[tuple[Array, Array]]:
        return [(layer.weights.copy(), layer.bias.copy()) for layer in self.trainable_layers]


class NetworkFactory:
    """Create networks with normally distributed initial weights."""

    def __init__(self, rng: np.random.Generator | None = None, *, seed: int | None = None) -> None:
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def create(
        self,
        input_configuration: LayerConfiguration,
        hidden_configurations: Sequence[LayerConfiguration] = (),
        output_configuration: LayerConfiguration | None = None,
    ) -> Network:
        if output_configuration is None:
            raise InvalidOperationError("An output layer configuration is required")
        configurations = [input_configuration, *hidden_configurations, output_configuration]

        expected = [LayerType.INPUT] + [LayerType.HIDDEN] * len(hidden_configurations) + [LayerType.OUTPUT]
        for idx, (config, kind) in enumerate(zip(configurations, expected)):
            if config.layer_type is not kind:
                raise InvalidOperationError(
                    f"Layer configuration {idx} must describe a {kind.value} layer, "
                    f"got {config.layer_type.value}"
                )

        layers: List[Layer] = [Layer.input_layer(input_configuration.neuron_count)]
        inputs = input_configuration.neuron_count
        for idx, config in enumerate(configurations[1:], start=1):
            neurons = config.neuron_count
            weights = self.rng.standard_normal((neurons, inputs))
            bias = self.rng.standard_normal(neurons)
            layers.append(Layer(config.layer_type, config.transfer, weights, bias, index=idx))
            inputs = neurons
        return Network(layers)


__all__ = ["Network", "NetworkFactory"]
