"""Metric helpers for evaluating trained networks."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence

import numpy as np

from ..core.network import Network
from ..core.types import Array, TrainingExample
from ..errors import ConfigurationError
from .costs import CostFunction


@dataclass(frozen=True)
class MetricResult:
    name: str
    value: float


def default_metrics(task_type: str) -> List[str]:
    if task_type == "regression":
        return ["mae", "rmse"]
    if task_type in {"binary", "multiclass"}:
        return ["accuracy"]
    raise ConfigurationError(f"Unknown task type: {task_type}")


def predict(network: Network, examples: Sequence[TrainingExample]) -> tuple[Array, Array]:
    """Return stacked network outputs and expected outputs for ``examples``."""

    outputs = np.stack([network.evaluate(example.inputs) for example in examples])
    targets = np.stack([example.outputs for example in examples])
    return outputs, targets


def compute_metric(
    name: str,
    predictions: Array,
    targets: Array,
    *,
    cost: CostFunction | None = None,
) -> MetricResult:
    key = name.lower()
    if key == "mae":
        value = float(np.mean(np.abs(predictions - targets)))
    elif key == "rmse":
        value = float(np.sqrt(np.mean((predictions - targets) ** 2)))
    elif key == "accuracy":
        if predictions.shape[1] > 1:
            pred_idx = np.argmax(predictions, axis=1)
            targ_idx = np.argmax(targets, axis=1)
        else:
            pred_idx = (predictions[:, 0] >= 0.5).astype(int)
            targ_idx = (targets[:, 0] >= 0.5).astype(int)
        value = float(np.mean(pred_idx == targ_idx))
    elif key == "cost":
        if cost is None:
            raise ConfigurationError("The cost metric requires a cost function")
        value = float(np.mean([cost(t, p) for t, p in zip(targets, predictions)]))
    else:
        raise ConfigurationError(f"Unknown metric: {name}")
    return MetricResult(name=key, value=value)


def evaluate_examples(
    network: Network,
    examples: Sequence[TrainingExample],
    names: Iterable[str],
    *,
    cost: CostFunction | None = None,
) -> Mapping[str, float]:
    """Evaluate ``network`` on ``examples`` for every metric in ``names``."""

    if not examples:
        return {}
    predictions, targets = predict(network, examples)
    results: Dict[str, float] = {}
    for name in names:
        metric = compute_metric(name, predictions, targets, cost=cost)
        results[metric.name] = metric.value
    return results


__all__ = ["MetricResult", "compute_metric", "default_metrics", "evaluate_examples", "predict"]
