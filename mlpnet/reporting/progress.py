"""Progress sinks recording the cost reported by the optimizer."""

from __future__ import annotations

import csv
import json
from pathlib import Path
from typing import Iterable, Mapping


class JsonlSink:
    """Append-only JSONL writer for training progress."""

    def __init__(self, path: str | Path, *, seed: int | None = None, run: str | None = None) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")
        self.seed = seed
        self.run = run

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        record = {"iteration": int(step), "seed": self.seed}
        if self.run is not None:
            record["run"] = self.run
        record.update({k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))})
        with self.path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record) + "\n")

    __call__ = on_step


class CsvSink:
    """Write progress to CSV with a stable schema."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text("")

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        row = {"iteration": int(step)}
        row.update({k: float(v) for k, v in metrics.items() if isinstance(v, (int, float))})
        with self.path.open("a", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=sorted(row.keys()))
            if handle.tell() == 0:
                writer.writeheader()
            writer.writerow(row)


class ProgressFanout:
    """Forward every progress report to several sinks."""

    def __init__(self, sinks: Iterable[object]) -> None:
        self.sinks = list(sinks)

    def on_step(self, step: int, metrics: Mapping[str, float]) -> None:
        for sink in self.sinks:
            if hasattr(sink, "on_step"):
                sink.on_step(step, metrics)  # type: ignore[attr-defined]
            elif callable(sink):
                sink(step, metrics)


__all__ = ["CsvSink", "JsonlSink", "ProgressFanout"]
