"""Dataset registry and built-in example sets."""

# Ensure built-in datasets register themselves when the package is imported.
from . import csv_generic as _csv_generic  # noqa: F401
from . import digits as _digits  # noqa: F401
from . import xor as _xor  # noqa: F401
from .registry import ExampleSet, available_datasets, get_dataset, register_dataset
from .xor import xor_examples

__all__ = [
    "ExampleSet",
    "available_datasets",
    "get_dataset",
    "register_dataset",
    "xor_examples",
]
