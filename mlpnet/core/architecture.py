"""Persisted network architecture records.

The on-disk shape mirrors the historic JSON format::

    {
      "name": "optional",
      "neuronCounts": [400, 25, 10],
      "hiddenLayers": [{"inputs": 400, "outputs": 25, "bias": [...], "weights": [...]}],
      "outputLayer": {"inputs": 25, "outputs": 10, "bias": [...], "weights": [...]}
    }

Weights are flattened row-major, i.e. one row per output neuron. Transfer
functions are not part of the record and must be supplied when a network is
rebuilt.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Mapping, Optional, Sequence

import numpy as np

from ..errors import ConfigurationError
from .layers import Layer
from .network import Network
from .transfer import TransferFunction
from .types import LayerType

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayerRecord:
    """Serialisable parameters of a single non-input layer."""

    inputs: int
    outputs: int
    bias: List[float]
    weights: List[float]

    def __post_init__(self) -> None:
        if self.inputs <= 0 or self.outputs <= 0:
            raise ConfigurationError(
                f"Layer record dimensions must be positive, got {self.inputs}x{self.outputs}"
            )
        if len(self.bias) != self.outputs:
            raise ConfigurationError(
                f"Layer record has {len(self.bias)} bias values for {self.outputs} outputs"
            )
        if len(self.weights) != self.inputs * self.outputs:
            raise ConfigurationError(
                f"Layer record has {len(self.weights)} weights, expected {self.inputs * self.outputs}"
            )

    @classmethod
    def from_layer(cls, layer: Layer) -> "LayerRecord":
        return cls(
            inputs=layer.input_count,
            outputs=layer.neuron_count,
            bias=[float(v) for v in layer.bias],
            weights=[float(v) for v in layer.weights.reshape(-1)],
        )

    def weight_matrix(self) -> np.ndarray:
        return np.asarray(self.weights, dtype=np.float64).reshape(self.outputs, self.inputs)

    def to_dict(self) -> dict:
        return {
            "inputs": self.inputs,
            "outputs": self.outputs,
            "bias": list(self.bias),
            "weights": list(self.weights),
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LayerRecord":
        missing = {"inputs", "outputs", "bias", "weights"} - set(data)
        if missing:
            raise ConfigurationError(f"Layer record is missing fields: {', '.join(sorted(missing))}")
        return cls(
            inputs=int(data["inputs"]),
            outputs=int(data["outputs"]),
            bias=[float(v) for v in data["bias"]],
            weights=[float(v) for v in data["weights"]],
        )


@dataclass(frozen=True)
class NetworkArchitecture:
    """Neuron counts and trained parameters of a network."""

    neuron_counts: List[int]
    output_layer: LayerRecord
    hidden_layers: Optional[List[LayerRecord]] = None
    name: Optional[str] = field(default=None)

    def __post_init__(self) -> None:
        hidden = self.hidden_layers or []
        if len(self.neuron_counts) != len(hidden) + 2:
            raise ConfigurationError(
                f"neuronCounts lists {len(self.neuron_counts)} layers but the record "
                f"describes {len(hidden) + 2}"
            )
        for idx, record in enumerate([*hidden, self.output_layer], start=1):
            if record.inputs != self.neuron_counts[idx - 1] or record.outputs != self.neuron_counts[idx]:
                raise ConfigurationError(
                    f"Layer {idx} record is {record.inputs}->{record.outputs}, "
                    f"expected {self.neuron_counts[idx - 1]}->{self.neuron_counts[idx]}"
                )

    @classmethod
    def from_network(cls, network: Network, name: str | None = None) -> "NetworkArchitecture":
        hidden = [LayerRecord.from_layer(layer) for layer in network.hidden_layers]
        return cls(
            neuron_counts=network.neuron_counts,
            output_layer=LayerRecord.from_layer(network.output_layer),
            hidden_layers=hidden or None,
            name=name,
        )

    def to_network(
        self,
        hidden_transfer: TransferFunction | Sequence[TransferFunction] | None,
        output_transfer: TransferFunction,
    ) -> Network:
        """Rebuild a :class:`Network` using the given transfer functions."""

        hidden = self.hidden_layers or []
        if hidden_transfer is None:
            if hidden:
                raise ConfigurationError("A hidden transfer function is required")
            hidden_transfers: List[TransferFunction] = []
        elif isinstance(hidden_transfer, Sequence):
            hidden_transfers = list(hidden_transfer)
        else:
            hidden_transfers = [hidden_transfer] * len(hidden)
        if len(hidden_transfers) != len(hidden):
            raise ConfigurationError(
                f"Expected {len(hidden)} hidden transfer functions, got {len(hidden_transfers)}"
            )

        layers: List[Layer] = [Layer.input_layer(self.neuron_counts[0])]
        for idx, (record, transfer) in enumerate(zip(hidden, hidden_transfers), start=1):
            layers.append(Layer(LayerType.HIDDEN, transfer, record.weight_matrix(), record.bias, index=idx))
        out = self.output_layer
        layers.append(
            Layer(LayerType.OUTPUT, output_transfer, out.weight_matrix(), out.bias, index=len(layers))
        )
        return Network(layers)

    def to_dict(self) -> dict:
        payload: dict = {}
        if self.name is not None:
            payload["name"] = self.name
        payload["neuronCounts"] = list(self.neuron_counts)
        if self.hidden_layers:
            payload["hiddenLayers"] = [record.to_dict() for record in self.hidden_layers]
        payload["outputLayer"] = self.output_layer.to_dict()
        return payload

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NetworkArchitecture":
        if not isinstance(data, Mapping):
            raise ConfigurationError("Network architecture must decode to a mapping")
        for key in ("neuronCounts", "outputLayer"):
            if key not in data:
                raise ConfigurationError(f"Network architecture is missing {key!r}")
        hidden = data.get("hiddenLayers")
        return cls(
            neuron_counts=[int(n) for n in data["neuronCounts"]],
            output_layer=LayerRecord.from_dict(data["outputLayer"]),
            hidden_layers=[LayerRecord.from_dict(item) for item in hidden] if hidden else None,
            name=data.get("name"),
        )


def save_architecture(path: str | Path, network: Network, *, name: str | None = None) -> str:
    """Write ``network`` as an architecture JSON file and return its path."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    architecture = NetworkArchitecture.from_network(network, name=name)
    path.write_text(json.dumps(architecture.to_dict(), indent=2))
    logger.info("Saved network architecture %s to %s", architecture.neuron_counts, path)
    return str(path)


def load_architecture(
    path: str | Path,
    hidden_transfer: TransferFunction | Sequence[TransferFunction] | None,
    output_transfer: TransferFunction,
) -> Network:
    """Read an architecture JSON file and rebuild the network."""

    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except json.JSONDecodeError as exc:
        raise ConfigurationError(f"{path.name} is not valid JSON") from exc
    return NetworkArchitecture.from_dict(data).to_network(hidden_transfer, output_transfer)


__all__ = ["LayerRecord", "NetworkArchitecture", "load_architecture", "save_architecture"]
