"""Benchmark suite configuration types."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any

from sparkbench.durations import parse_duration


def _mapping(data: Any, what: str) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"{what} must be a mapping")
    return data


def _str(value: Any) -> str:
    return "" if value is None else str(value)


def _int(value: Any, what: str) -> int:
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValueError(f"{what} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValueError(f"{what} must be an integer") from None


def _float(value: Any, what: str) -> float:
    if value is None:
        return 0.0
    if isinstance(value, bool):
        raise ValueError(f"{what} must be a number")
    try:
        return float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{what} must be a number") from None


def _bool(value: Any, what: str) -> bool:
    if value is None:
        return False
    if not isinstance(value, bool):
        raise ValueError(f"{what} must be a boolean")
    return value


def _list(value: Any, what: str) -> list[Any]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise ValueError(f"{what} must be a list")
    return value


def _ints(value: Any, what: str) -> list[int]:
    return [_int(v, what) for v in _list(value, what)]


def _strs(value: Any, what: str) -> list[str]:
    return [_str(v) for v in _list(value, what)]


def _duration(value: Any) -> timedelta:
    if value is None:
        return timedelta(0)
    if not isinstance(value, str):
        raise ValueError('duration must be a string (e.g. "5m", "30s")')
    try:
        return parse_duration(value)
    except ValueError as exc:
        raise ValueError(f"invalid duration {value!r}: {exc}") from exc


@dataclass
class PromptSet:
    """Which prompts a scenario uses: a built-in set, a file or inline text."""

    builtin: str = ""
    file: str = ""
    inline: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> PromptSet:
        data = _mapping(data, "prompts")
        return cls(
            builtin=_str(data.get("builtin")),
            file=_str(data.get("file")),
            inline=_strs(data.get("inline"), "prompts.inline"),
        )


@dataclass
class ModelSpec:
    """A model to benchmark and the quantizations to try."""

    name: str = ""
    ref: str = ""
    quants: list[str] = field(default_factory=list)
    alias: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ModelSpec:
        data = _mapping(data, "model")
        return cls(
            name=_str(data.get("name")),
            ref=_str(data.get("ref")),
            quants=_strs(data.get("quants"), "quants"),
            alias=_str(data.get("alias")),
        )


@dataclass
class Scenario:
    """A set of conditions to benchmark under."""

    name: str = ""
    description: str = ""
    context_sizes: list[int] = field(default_factory=list)
    batch_sizes: list[int] = field(default_factory=list)
    parallel_slots: list[int] = field(default_factory=list)
    prompts: PromptSet = field(default_factory=PromptSet)
    max_tokens: int = 0
    repeat: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Scenario:
        data = _mapping(data, "scenario")
        return cls(
            name=_str(data.get("name")),
            description=_str(data.get("description")),
            context_sizes=_ints(data.get("context_sizes"), "context_sizes"),
            batch_sizes=_ints(data.get("batch_sizes"), "batch_sizes"),
            parallel_slots=_ints(data.get("parallel_slots"), "parallel_slots"),
            prompts=PromptSet.from_dict(data.get("prompts")),
            max_tokens=_int(data.get("max_tokens"), "max_tokens"),
            repeat=_int(data.get("repeat"), "repeat"),
        )


@dataclass
class JobDefaults:
    """Values inherited by every job."""

    warmup_prompts: int = 0
    measure_prompts: int = 0
    max_tokens: int = 0
    temperature: float = 0.0
    cooldown_seconds: int = 0
    timeout: timedelta = field(default_factory=timedelta)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> JobDefaults:
        data = _mapping(data, "defaults")
        return cls(
            warmup_prompts=_int(data.get("warmup_prompts"), "warmup_prompts"),
            measure_prompts=_int(data.get("measure_prompts"), "measure_prompts"),
            max_tokens=_int(data.get("max_tokens"), "max_tokens"),
            temperature=_float(data.get("temperature"), "temperature"),
            cooldown_seconds=_int(data.get("cooldown_seconds"), "cooldown_seconds"),
            timeout=_duration(data.get("timeout")),
        )


@dataclass
class SuiteSettings:
    """Settings controlling a whole benchmark run."""

    output_dir: str = ""
    output_formats: list[str] = field(default_factory=list)
    abort_on_error: bool = False
    system_check: bool = False
    dirty_mode: str = ""
    cooldown_between: int = 0
    server_startup_timeout: timedelta = field(default_factory=timedelta)
    metrics_sample_ms: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SuiteSettings:
        data = _mapping(data, "settings")
        return cls(
            output_dir=_str(data.get("output_dir")),
            output_formats=_strs(data.get("output_formats"), "output_formats"),
            abort_on_error=_bool(data.get("abort_on_error"), "abort_on_error"),
            system_check=_bool(data.get("system_check"), "system_check"),
            dirty_mode=_str(data.get("dirty_mode")),
            cooldown_between=_int(data.get("cooldown_between"), "cooldown_between"),
            server_startup_timeout=_duration(data.get("server_startup_timeout")),
            metrics_sample_ms=_int(data.get("metrics_sample_ms"), "metrics_sample_ms"),
        )


@dataclass
class BenchmarkSuite:
    """A complete benchmark run definition."""

    name: str = ""
    description: str = ""
    defaults: JobDefaults = field(default_factory=JobDefaults)
    models: list[ModelSpec] = field(default_factory=list)
    scenarios: list[Scenario] = field(default_factory=list)
    settings: SuiteSettings = field(default_factory=SuiteSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> BenchmarkSuite:
        """Build a suite from parsed YAML; raises ValueError on badly typed values."""
        data = _mapping(data, "suite")
        return cls(
            name=_str(data.get("name")),
            description=_str(data.get("description")),
            defaults=JobDefaults.from_dict(data.get("defaults")),
            models=[ModelSpec.from_dict(m) for m in _list(data.get("models"), "models")],
            scenarios=[
                Scenario.from_dict(s) for s in _list(data.get("scenarios"), "scenarios")
            ],
            settings=SuiteSettings.from_dict(data.get("settings")),
        )


@dataclass
class JobSpec:
    """Parameters of a single benchmark job."""

    job_id: str
    model_spec: ModelSpec
    quant: str
    scenario: Scenario
    run_index: int
    scenario_id: str
    context_size: int
    batch_size: int
    parallel_slots: int
    max_tokens: int
    temperature: float
    warmup_prompts: int
    measure_prompts: int
    cooldown_secs: int
    timeout: timedelta