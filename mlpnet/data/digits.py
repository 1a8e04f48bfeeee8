"""Handwritten digit classification using scikit-learn's bundled 8x8 images."""

from __future__ import annotations

import numpy as np
from sklearn.datasets import load_digits

from .registry import ExampleSet, ProgressCallback, register_dataset
from .utils import one_hot, shuffled_split, to_examples


@register_dataset("digits")
def load_digit_examples(
    *,
    max_items: int | None = None,
    test_split: float = 0.2,
    seed: int = 0,
    progress: ProgressCallback | None = None,
) -> ExampleSet:
    """Load the digits as one-hot labelled examples with pixels scaled to [0, 1]."""

    bunch = load_digits()
    pixels = np.asarray(bunch.data, dtype=np.float64)
    labels = np.asarray(bunch.target, dtype=np.int64)
    if max_items is not None:
        pixels, labels = pixels[:max_items], labels[:max_items]

    # scale by the global intensity range rather than per pixel column
    low, high = float(pixels.min()), float(pixels.max())
    pixels = (pixels - low) / (high - low)
    targets = one_hot(labels, 10)

    splits = shuffled_split(pixels.shape[0], test_split=test_split, seed=seed)
    train = to_examples(pixels, targets, splits.train, progress=_scaled(progress, 0.0, 0.8))
    test = to_examples(pixels, targets, splits.test, progress=_scaled(progress, 0.8, 0.2))
    return ExampleSet(
        name="digits",
        train=train,
        test=test,
        task_type="multiclass",
        num_classes=10,
        provenance={
            "type": "sklearn.load_digits",
            "items": int(pixels.shape[0]),
            "image_shape": list(bunch.images.shape[1:]),
            "test_split": test_split,
            "seed": seed,
        },
    )


def _scaled(progress: ProgressCallback | None, offset: float, span: float) -> ProgressCallback | None:
    if progress is None:
        return None
    return lambda fraction: progress(offset + span * fraction)
