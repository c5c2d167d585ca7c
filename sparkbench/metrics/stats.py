"""Throughput statistics, raw samples and their aggregation."""

from __future__ import annotations

import json
import math
from dataclasses import asdict, dataclass, field, fields
from typing import Any


def _from_mapping(cls, data: dict[str, Any] | None):
    """Build a flat dataclass from a mapping, coercing values to the defaults' types."""
    data = data or {}
    values = {}
    for f in fields(cls):
        raw = data.get(f.name)
        if raw is not None:
            values[f.name] = type(f.default)(raw)
    return cls(**values)


@dataclass
class ThroughputStats:
    """Aggregated performance figures over a set of samples."""

    mean: float = 0.0
    median: float = 0.0
    p5: float = 0.0
    p95: float = 0.0
    stddev: float = 0.0
    min: float = 0.0
    max: float = 0.0
    samples: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> ThroughputStats:
        return _from_mapping(cls, data)


@dataclass
class SystemMetrics:
    """Resource utilisation during the measurement phase."""

    available: bool = False
    peak_memory_mb: int = 0
    peak_gpu_memory_mb: int = 0
    mean_cpu_pct: float = 0.0
    mean_gpu_pct: float = 0.0
    peak_gpu_pct: float = 0.0
    thermal_throttled: bool = False
    sample_count: int = 0
    sample_interval_ms: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> SystemMetrics:
        return _from_mapping(cls, data)


@dataclass
class RawSample:
    """A single measurement from one prompt request."""

    prompt_tokens: int = 0
    predicted_tokens: int = 0
    prompt_ms: float = 0.0
    predicted_ms: float = 0.0
    ttft_ms: float = 0.0
    end_to_end_ms: float = 0.0
    prompt_bytes: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> RawSample:
        return _from_mapping(cls, data)


@dataclass
class Timings:
    """Raw timing data reported by the inference server."""

    prompt_n: int = 0
    prompt_ms: float = 0.0
    predicted_n: int = 0
    predicted_ms: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Timings:
        return _from_mapping(cls, data)


def _percentile(ordered: list[float], p: float) -> float:
    n = len(ordered)
    if n == 0:
        return 0.0
    if n == 1:
        return ordered[0]
    rank = p * (n - 1)
    lower = int(rank)
    upper = lower + 1
    if upper >= n:
        return ordered[-1]
    frac = rank - lower
    return ordered[lower] * (1 - frac) + ordered[upper] * frac


def aggregate(values) -> ThroughputStats:
    """Compute mean, median, percentiles and sample standard deviation."""
    ordered = sorted(values or [])
    n = len(ordered)
    if n == 0:
        return ThroughputStats()

    mean = sum(ordered) / n
    variance = sum((v - mean) ** 2 for v in ordered)
    if n > 1:
        variance /= n - 1

    return ThroughputStats(
        mean=mean,
        median=_percentile(ordered, 0.50),
        p5=_percentile(ordered, 0.05),
        p95=_percentile(ordered, 0.95),
        stddev=math.sqrt(variance),
        min=ordered[0],
        max=ordered[-1],
        samples=n,
    )


def extract_timings(data: bytes | str) -> Timings:
    """Parse the "timings" object from a raw JSON response body.

    Raises ValueError if the body is not a JSON object.
    """
    envelope = json.loads(data)
    if not isinstance(envelope, dict):
        raise ValueError("response body is not a JSON object")
    return Timings.from_dict(envelope.get("timings"))


def compute_rates(timings: Timings) -> tuple[float, float]:
    """Return (prompt tokens/s, generation tokens/s); 0 where no time was recorded."""
    prompt_rate = 0.0
    gen_rate = 0.0
    if timings.prompt_ms > 0:
        prompt_rate = timings.prompt_n / (timings.prompt_ms / 1000.0)
    if timings.predicted_ms > 0:
        gen_rate = timings.predicted_n / (timings.predicted_ms / 1000.0)
    return prompt_rate, gen_rate


@dataclass
class CollectedResults:
    """Aggregated results of a Collector."""

    prompt_eval: ThroughputStats = field(default_factory=ThroughputStats)
    generation: ThroughputStats = field(default_factory=ThroughputStats)
    first_token_time: ThroughputStats = field(default_factory=ThroughputStats)
    end_to_end: ThroughputStats = field(default_factory=ThroughputStats)
    raw_samples: list[RawSample] = field(default_factory=list)


class Collector:
    """Accumulates raw samples and aggregates them into statistics."""

    def __init__(self) -> None:
        self._samples: list[RawSample] = []

    def add(self, sample: RawSample) -> None:
        """Record a sample from a single prompt request."""
        self._samples.append(sample)

    def samples(self) -> list[RawSample]:
        """The samples collected so far."""
        return list(self._samples)

    def count(self) -> int:
        """Number of samples collected."""
        return len(self._samples)

    def collect(self) -> CollectedResults:
        """Aggregate all accumulated samples."""
        prompt_rates = [
            s.prompt_tokens / (s.prompt_ms / 1000.0)
            for s in self._samples
            if s.prompt_ms > 0 and s.prompt_tokens > 0
        ]
        gen_rates = [
            s.predicted_tokens / (s.predicted_ms / 1000.0)
            for s in self._samples
            if s.predicted_ms > 0 and s.predicted_tokens > 0
        ]
        ttfts = [s.ttft_ms for s in self._samples if s.ttft_ms > 0]
        e2es = [s.end_to_end_ms for s in self._samples if s.end_to_end_ms > 0]

        return CollectedResults(
            prompt_eval=aggregate(prompt_rates),
            generation=aggregate(gen_rates),
            first_token_time=aggregate(ttfts),
            end_to_end=aggregate(e2es),
            raw_samples=list(self._samples),
        )