"""Generic CSV loader for classification tasks."""

from __future__ import annotations

from pathlib import Path

import numpy as np
import pandas as pd
from sklearn.preprocessing import LabelEncoder

from ..errors import ConfigurationError
from .registry import ExampleSet, ProgressCallback, register_dataset
from .utils import minmax_scale, one_hot, shuffled_split, to_examples

FIXTURE_DIR = Path(__file__).resolve().parent / "_fixtures"


def _load_csv(path: Path, target_col: str) -> tuple[np.ndarray, np.ndarray]:
    df = pd.read_csv(path)
    if target_col not in df.columns:
        raise ConfigurationError(f"Target column {target_col!r} not found in {path.name}")
    y = df.pop(target_col).to_numpy()
    X = df.to_numpy(dtype=np.float64)
    return X, y


@register_dataset("csv_classification")
def load_csv_classification(
    *,
    csv_path: str | Path | None = None,
    target_col: str = "label",
    test_split: float = 0.2,
    seed: int = 0,
    scale_inputs: bool = True,
    progress: ProgressCallback | None = None,
) -> ExampleSet:
    """Load a classification dataset from a CSV file with one-hot targets."""

    path = Path(csv_path) if csv_path else FIXTURE_DIR / "csv_classification_fixture.csv"
    X, y_raw = _load_csv(path, target_col)
    if scale_inputs:
        X = minmax_scale(X)

    encoder = LabelEncoder()
    labels = encoder.fit_transform(y_raw)
    num_classes = int(len(encoder.classes_))
    task_type = "binary" if num_classes == 2 else "multiclass"
    # binary problems use a single output neuron
    targets = labels.reshape(-1, 1).astype(np.float64) if num_classes == 2 else one_hot(labels, num_classes)

    splits = shuffled_split(X.shape[0], test_split=test_split, seed=seed)
    return ExampleSet(
        name="csv_classification",
        train=to_examples(X, targets, splits.train, progress=progress),
        test=to_examples(X, targets, splits.test),
        task_type=task_type,
        num_classes=num_classes,
        provenance={
            "type": "csv",
            "path": str(path),
            "target_col": target_col,
            "classes": [str(c) for c in encoder.classes_],
            "test_split": test_split,
            "seed": seed,
        },
    )
