"""Persistent storage of benchmark runs and queries over them."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

import yaml

from sparkbench.job.types import JobResult, JobStatus
from sparkbench.registry.manifest import _format_time, _parse_time

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class StoreError(Exception):
    """Raised when stored results cannot be read or parsed."""


def _aware(value: datetime | None) -> datetime:
    if value is None:
        return _OLDEST
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


@dataclass
class RunResult:
    """The complete results of a benchmark run."""

    schema_version: int = 0
    run_id: str = ""
    suite_name: str = ""
    dirty_mode: str = ""
    preflight_warnings: list[str] = field(default_factory=list)
    started_at: datetime | None = None
    completed_at: datetime | None = None
    hardware: dict[str, Any] = field(default_factory=dict)
    jobs: list[JobResult] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "schema_version": self.schema_version,
            "run_id": self.run_id,
            "suite_name": self.suite_name,
            "dirty_mode": self.dirty_mode,
            "preflight_warnings": list(self.preflight_warnings),
            "started_at": _format_time(self.started_at),
            "completed_at": _format_time(self.completed_at),
            "hardware": dict(self.hardware),
            "jobs": [j.to_dict() for j in self.jobs],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunResult:
        return cls(
            schema_version=int(data.get("schema_version") or 0),
            run_id=data.get("run_id") or "",
            suite_name=data.get("suite_name") or "",
            dirty_mode=data.get("dirty_mode") or "",
            preflight_warnings=list(data.get("preflight_warnings") or []),
            started_at=_parse_time(data.get("started_at")),
            completed_at=_parse_time(data.get("completed_at")),
            hardware=dict(data.get("hardware") or {}),
            jobs=[JobResult.from_dict(j) for j in data.get("jobs") or []],
        )


@dataclass
class RunSummary:
    """A quick overview of a stored run."""

    run_id: str = ""
    suite_name: str = ""
    started_at: datetime | None = None
    completed_at: datetime | None = None
    job_count: int = 0
    failed_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "suite_name": self.suite_name,
            "started_at": _format_time(self.started_at),
            "completed_at": _format_time(self.completed_at),
            "job_count": self.job_count,
            "failed_count": self.failed_count,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RunSummary:
        return cls(
            run_id=data.get("run_id") or "",
            suite_name=data.get("suite_name") or "",
            started_at=_parse_time(data.get("started_at")),
            completed_at=_parse_time(data.get("completed_at")),
            job_count=int(data.get("job_count") or 0),
            failed_count=int(data.get("failed_count") or 0),
        )


@dataclass
class StoreFilter:
    """Filters applied when listing runs."""

    model: str = ""
    after: datetime | None = None
    before: datetime | None = None


def generate_run_id() -> str:
    """Create a run ID of the form run-YYYYMMDD-HHMMSS from the local time."""
    return datetime.now().strftime("run-%Y%m%d-%H%M%S")


def _count_failed(jobs: list[JobResult]) -> int:
    return sum(1 for j in jobs if j.status == JobStatus.FAILED)


def _summarize(result: RunResult) -> RunSummary:
    return RunSummary(
        run_id=result.run_id,
        suite_name=result.suite_name,
        started_at=result.started_at,
        completed_at=result.completed_at,
        job_count=len(result.jobs),
        failed_count=_count_failed(result.jobs),
    )


def _write_json(path: str, data: Any) -> None:
    with open(path, "w", encoding="utf-8") as handle:
        json.dump(data, handle, indent=2, ensure_ascii=False)


def _read_json(path: str) -> Any:
    with open(path, encoding="utf-8") as handle:
        return json.load(handle)


def _config_for_save(result: RunResult) -> str:
    """A minimal YAML record of a run's settings."""
    started = _aware(result.started_at).isoformat(timespec="seconds").replace("+00:00", "Z")
    return yaml.safe_dump(
        {
            "suite_name": result.suite_name,
            "run_id": result.run_id,
            "dirty_mode": result.dirty_mode,
            "started_at": started,
        }
    )


class Store:
    """Benchmark results kept as one directory per run."""

    def __init__(self, base_dir: str) -> None:
        self.base_dir = str(base_dir)

    def run_dir(self, run_id: str) -> str:
        """Directory holding a run's files."""
        return os.path.join(self.base_dir, run_id)

    def save_run(self, result: RunResult) -> None:
        """Write results.json, summary.json, system.json and one file per job."""
        directory = self.run_dir(result.run_id)
        os.makedirs(directory, exist_ok=True)
        _write_json(os.path.join(directory, "results.json"), result.to_dict())
        _write_json(os.path.join(directory, "summary.json"), _summarize(result).to_dict())
        _write_json(os.path.join(directory, "system.json"), dict(result.hardware))

        jobs_dir = os.path.join(directory, "jobs")
        os.makedirs(jobs_dir, exist_ok=True)
        for job in result.jobs:
            self._save_job_file(jobs_dir, job)

    def save_config(self, run_id: str, config_data: bytes | str) -> None:
        """Keep a copy of the input configuration as config.yaml."""
        directory = self.run_dir(run_id)
        os.makedirs(directory, exist_ok=True)
        if isinstance(config_data, str):
            config_data = config_data.encode("utf-8")
        with open(os.path.join(directory, "config.yaml"), "wb") as handle:
            handle.write(config_data)

    def save_system(self, run_id: str, hardware: dict[str, Any]) -> None:
        """Write hardware information for a run."""
        directory = self.run_dir(run_id)
        os.makedirs(directory, exist_ok=True)
        _write_json(os.path.join(directory, "system.json"), dict(hardware))

    def save_job(self, run_id: str, result: JobResult) -> None:
        """Save a single job result as soon as it is done."""
        jobs_dir = os.path.join(self.run_dir(run_id), "jobs")
        os.makedirs(jobs_dir, exist_ok=True)
        self._save_job_file(jobs_dir, result)

    @staticmethod
    def _save_job_file(jobs_dir: str, result: JobResult) -> None:
        _write_json(os.path.join(jobs_dir, result.job_id + ".json"), result.to_dict())

    def list(self, filter: StoreFilter | None = None) -> list[RunSummary]:
        """Summaries of stored runs that match the filter, newest first."""
        filter = filter or StoreFilter()
        try:
            entries = sorted(os.scandir(self.base_dir), key=lambda e: e.name)
        except FileNotFoundError:
            return []
        except OSError as exc:
            raise StoreError(f"reading results directory: {exc}") from exc

        summaries = []
        for entry in entries:
            if not entry.is_dir() or not entry.name.startswith("run-"):
                continue
            try:
                summary = self._load_summary(entry.name)
            except StoreError:
                continue

            started = _aware(summary.started_at)
            if filter.after is not None and started < _aware(filter.after):
                continue
            if filter.before is not None and started > _aware(filter.before):
                continue
            if filter.model and not self._run_matches_model(entry.name, filter.model):
                continue
            summaries.append(summary)

        summaries.sort(key=lambda s: _aware(s.started_at), reverse=True)
        return summaries

    def load(self, run_id: str) -> RunResult:
        """Read the complete results of a run."""
        path = os.path.join(self.run_dir(run_id), "results.json")
        try:
            raw = _read_json(path)
        except OSError as exc:
            raise StoreError(f"reading results for {run_id}: {exc}") from exc
        except ValueError as exc:
            raise StoreError(f"parsing results for {run_id}: {exc}") from exc
        try:
            return RunResult.from_dict(raw)
        except (ValueError, TypeError, AttributeError) as exc:
            raise StoreError(f"parsing results for {run_id}: {exc}") from exc

    def load_job(self, run_id: str, job_id: str) -> JobResult:
        """Read a single job result of a run."""
        path = os.path.join(self.run_dir(run_id), "jobs", job_id + ".json")
        try:
            raw = _read_json(path)
        except OSError as exc:
            raise StoreError(f"reading job {run_id}/{job_id}: {exc}") from exc
        except ValueError as exc:
            raise StoreError(f"parsing job {run_id}/{job_id}: {exc}") from exc
        try:
            return JobResult.from_dict(raw)
        except (ValueError, TypeError, AttributeError) as exc:
            raise StoreError(f"parsing job {run_id}/{job_id}: {exc}") from exc

    def _load_summary(self, run_id: str) -> RunSummary:
        path = os.path.join(self.run_dir(run_id), "summary.json")
        try:
            return RunSummary.from_dict(_read_json(path))
        except (OSError, ValueError, TypeError, AttributeError):
            pass
        return _summarize(self.load(run_id))

    def _run_matches_model(self, run_id: str, pattern: str) -> bool:
        try:
            result = self.load(run_id)
        except StoreError:
            return False
        for job in result.jobs:
            candidates = (
                job.job_id,
                str(job.model.get("requested_ref") or ""),
                str(job.model.get("normalized_ref") or ""),
            )
            if any(pattern in text for text in candidates):
                return True
        return False