"""Run artifacts: the training outcome summary and the reproducibility manifest."""

from __future__ import annotations

import json
import math
import platform
import subprocess
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping

import numpy as np


def git_sha() -> str:
    try:
        out = subprocess.check_output(["git", "rev-parse", "HEAD"], stderr=subprocess.DEVNULL)
        return out.decode().strip()
    except (OSError, subprocess.CalledProcessError):
        return "unknown"


def environment() -> Dict[str, str]:
    return {
        "python": platform.python_version(),
        "numpy": np.__version__,
        "platform": platform.platform(),
    }


@dataclass(frozen=True)
class RunSummary:
    """Outcome of one momentum descent run.

    ``iterations`` counts committed weight updates. ``final_cost`` is the cost
    of the last evaluated iteration; when training stops on the epsilon
    criterion this is the converged cost, which is never followed by an update.
    """

    stop: str
    iterations: int
    final_cost: float
    elapsed_seconds: float = 0.0
    descent: Mapping[str, Any] = field(default_factory=dict)
    metrics: Mapping[str, Mapping[str, float]] = field(default_factory=dict)

    @property
    def converged(self) -> bool:
        return self.stop == "epsilon_reached"

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["converged"] = self.converged
        payload["elapsed_seconds"] = round(self.elapsed_seconds, 6)
        # NaN is not valid JSON; a run cancelled before its first evaluation has no cost
        if not math.isfinite(self.final_cost):
            payload["final_cost"] = None
        return payload


def write_summary(path: str | Path, summary: RunSummary) -> str:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(summary.to_dict(), sort_keys=True, indent=2))
    return str(path)


def write_manifest(
    path: str | Path,
    *,
    config: Mapping[str, object],
    dataset_provenance: Mapping[str, object],
    summary: RunSummary | None = None,
) -> str:
    """Write a manifest JSON file capturing reproducibility metadata."""

    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    manifest: Dict[str, Any] = {
        "git_sha": git_sha(),
        "generated_at": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
        "config": config,
        "dataset": dict(dataset_provenance),
        "environment": environment(),
    }
    if summary is not None:
        outcome = summary.to_dict()
        outcome.pop("metrics")
        manifest["outcome"] = outcome
    path.write_text(json.dumps(manifest, indent=2))
    return str(path)


__all__ = ["RunSummary", "environment", "git_sha", "write_manifest", "write_summary"]
