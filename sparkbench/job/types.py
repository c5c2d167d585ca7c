"""Job outcome types and the cooldown pause between jobs."""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any

from sparkbench.durations import format_duration, parse_duration
from sparkbench.metrics.stats import RawSample, SystemMetrics, ThroughputStats
from sparkbench.registry.manifest import _format_time, _parse_time


class JobStatus(str, Enum):
    """Outcome of a benchmark job."""

    OK = "ok"
    FAILED = "failed"
    SKIPPED = "skipped"


class Cancelled(Exception):
    """Raised when a wait is cancelled."""


@dataclass
class JobError:
    """Typed failure information for reporting and resume."""

    type: str
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "message": self.message}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobError:
        return cls(type=data.get("type") or "", message=data.get("message") or "")


@dataclass
class JobResult:
    """The complete output of a single benchmark job."""

    schema_version: int = 0
    job_id: str = ""
    scenario_name: str = ""
    scenario_id: str = ""
    run_index: int = 0

    model: dict[str, Any] = field(default_factory=dict)

    effective_config: dict[str, Any] = field(default_factory=dict)
    capabilities: dict[str, Any] = field(default_factory=dict)
    effective_flags: list[str] = field(default_factory=list)
    flag_warnings: list[str] = field(default_factory=list)

    status: JobStatus | None = None
    error: JobError | None = None

    model_load_time_ms: float = 0.0
    prompt_eval: ThroughputStats = field(default_factory=ThroughputStats)
    generation: ThroughputStats = field(default_factory=ThroughputStats)
    first_token_time: ThroughputStats = field(default_factory=ThroughputStats)
    end_to_end: ThroughputStats = field(default_factory=ThroughputStats)

    system_metrics: SystemMetrics | None = None

    hardware: dict[str, Any] = field(default_factory=dict)
    timestamp: datetime | None = None
    duration: timedelta = field(default_factory=timedelta)

    raw_samples: list[RawSample] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "schema_version": self.schema_version,
            "job_id": self.job_id,
            "scenario_name": self.scenario_name,
            "scenario_id": self.scenario_id,
            "run_index": self.run_index,
            "model": dict(self.model),
            "effective_config": dict(self.effective_config),
            "capabilities": dict(self.capabilities),
            "effective_flags": list(self.effective_flags),
            "flag_warnings": list(self.flag_warnings),
            "status": self.status.value if self.status else "",
            "error": self.error.to_dict() if self.error else None,
            "model_load_time_ms": self.model_load_time_ms,
            "prompt_eval_tok_s": self.prompt_eval.to_dict(),
            "generation_tok_s": self.generation.to_dict(),
            "ttft_ms": self.first_token_time.to_dict(),
            "end_to_end_ms": self.end_to_end.to_dict(),
            "system_metrics": self.system_metrics.to_dict() if self.system_metrics else None,
            "hardware": dict(self.hardware),
            "timestamp": _format_time(self.timestamp),
            "duration": format_duration(self.duration),
        }
        if self.raw_samples:
            data["raw_samples"] = [s.to_dict() for s in self.raw_samples]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> JobResult:
        """Build a result from its JSON form; raises ValueError on bad status or duration."""
        status = data.get("status") or ""
        error = data.get("error")
        metrics = data.get("system_metrics")
        duration = data.get("duration")
        return cls(
            schema_version=int(data.get("schema_version") or 0),
            job_id=data.get("job_id") or "",
            scenario_name=data.get("scenario_name") or "",
            scenario_id=data.get("scenario_id") or "",
            run_index=int(data.get("run_index") or 0),
            model=dict(data.get("model") or {}),
            effective_config=dict(data.get("effective_config") or {}),
            capabilities=dict(data.get("capabilities") or {}),
            effective_flags=list(data.get("effective_flags") or []),
            flag_warnings=list(data.get("flag_warnings") or []),
            status=JobStatus(status) if status else None,
            error=JobError.from_dict(error) if error else None,
            model_load_time_ms=float(data.get("model_load_time_ms") or 0.0),
            prompt_eval=ThroughputStats.from_dict(data.get("prompt_eval_tok_s")),
            generation=ThroughputStats.from_dict(data.get("generation_tok_s")),
            first_token_time=ThroughputStats.from_dict(data.get("ttft_ms")),
            end_to_end=ThroughputStats.from_dict(data.get("end_to_end_ms")),
            system_metrics=SystemMetrics.from_dict(metrics) if metrics is not None else None,
            hardware=dict(data.get("hardware") or {}),
            timestamp=_parse_time(data.get("timestamp")),
            duration=parse_duration(duration) if duration is not None else timedelta(0),
            raw_samples=[RawSample.from_dict(s) for s in data.get("raw_samples") or []],
        )


def cooldown(seconds: int, cancel: threading.Event | None = None) -> None:
    """Pause for the given number of seconds.

    Raises Cancelled if the cancel event is set before the time is up.
    """
    if seconds <= 0:
        return
    if cancel is None:
        time.sleep(seconds)
        return
    if cancel.wait(seconds):
        raise Cancelled("cooldown cancelled")