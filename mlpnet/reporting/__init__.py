"""Reporting utilities for mlpnet."""

from .artifacts import RunSummary, write_manifest, write_summary
from .plots import PlotAdapter
from .progress import CsvSink, JsonlSink, ProgressFanout

__all__ = [
    "CsvSink",
    "JsonlSink",
    "PlotAdapter",
    "ProgressFanout",
    "RunSummary",
    "write_manifest",
    "write_summary",
]
