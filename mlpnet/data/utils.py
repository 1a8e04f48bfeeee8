"""Utility helpers for dataset loaders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence, Tuple

import numpy as np

from ..core.types import TrainingExample
from ..errors import ConfigurationError
from .registry import ProgressCallback


@dataclass(frozen=True)
class SplitIndices:
    """Indices for train/test partitions."""

    train: np.ndarray
    test: np.ndarray

    @property
    def sizes(self) -> Mapping[str, int]:
        return {"train": int(self.train.size), "test": int(self.test.size)}


def shuffled_split(n_samples: int, *, test_split: float = 0.2, seed: int = 0) -> SplitIndices:
    """Shuffle ``n_samples`` indices and cut them into train and test parts."""

    if not 0 <= test_split < 1:
        raise ConfigurationError("test_split must be in [0, 1)")

    rng = np.random.default_rng(seed)
    indices = np.arange(n_samples)
    rng.shuffle(indices)

    train_size = n_samples - int(round(n_samples * test_split))
    if train_size <= 0:
        raise ConfigurationError("Not enough samples for the requested split")
    return SplitIndices(train=indices[:train_size], test=indices[train_size:])


def one_hot(labels: np.ndarray, num_classes: int) -> np.ndarray:
    out = np.zeros((labels.shape[0], num_classes), dtype=np.float64)
    out[np.arange(labels.shape[0]), labels.astype(int)] = 1.0
    return out


def minmax_scale(array: np.ndarray) -> np.ndarray:
    """Scale every column of ``array`` into ``[0, 1]``."""

    low = array.min(axis=0, keepdims=True)
    span = array.max(axis=0, keepdims=True) - low
    span = np.where(span == 0, 1.0, span)
    return (array - low) / span


def to_examples(
    features: np.ndarray,
    targets: np.ndarray,
    indices: Sequence[int] | None = None,
    *,
    progress: ProgressCallback | None = None,
) -> Tuple[TrainingExample, ...]:
    """Convert row-aligned feature/target arrays into training examples."""

    rows = np.arange(features.shape[0]) if indices is None else np.asarray(indices)
    examples = []
    total = max(1, rows.size)
    for count, row in enumerate(rows, start=1):
        examples.append(TrainingExample(features[row], targets[row]))
        if progress is not None:
            progress(count / total)
    return tuple(examples)
