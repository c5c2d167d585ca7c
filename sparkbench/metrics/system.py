"""Periodic sampling of memory and GPU metrics during a benchmark."""

from __future__ import annotations

import subprocess
import sys
import threading
from dataclasses import dataclass
from typing import Callable

from sparkbench.metrics.stats import SystemMetrics

_THROTTLE_TEMP_C = 90


@dataclass
class SystemSample:
    """One reading of system resource usage."""

    cpu_percent: float = 0.0
    memory_mb: int = 0
    gpu_percent: float = 0.0
    gpu_memory_mb: int = 0
    gpu_temp: float = 0.0


def _to_float(text: str) -> float:
    try:
        return float(text.strip())
    except ValueError:
        return 0.0


def _to_int(text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        return 0


def sample_memory() -> int:
    """Total system memory in MB on Linux; 0 elsewhere or on failure."""
    if not sys.platform.startswith("linux"):
        return 0
    try:
        with open("/proc/meminfo", encoding="utf-8") as handle:
            for line in handle:
                if line.startswith("MemTotal:"):
                    fields = line.split()
                    if len(fields) >= 2:
                        return _to_int(fields[1]) // 1024
    except OSError:
        return 0
    return 0


def sample_nvidia_smi() -> tuple[float, int, float]:
    """Return (GPU utilisation %, GPU memory used MB, GPU temperature C); zeros on failure."""
    try:
        completed = subprocess.run(
            [
                "nvidia-smi",
                "--query-gpu=utilization.gpu,memory.used,temperature.gpu",
                "--format=csv,noheader,nounits",
            ],
            capture_output=True,
            text=True,
            check=True,
        )
    except (OSError, subprocess.SubprocessError):
        return 0.0, 0, 0.0

    lines = completed.stdout.strip().split("\n")
    fields = lines[0].split(", ")
    if len(fields) < 3:
        return 0.0, 0, 0.0
    return _to_float(fields[0]), _to_int(fields[1]), _to_float(fields[2])


def take_sample() -> SystemSample:
    """Take one best-effort reading of memory and GPU state."""
    gpu, gpu_mem, gpu_temp = sample_nvidia_smi()
    return SystemSample(
        memory_mb=sample_memory(),
        gpu_percent=gpu,
        gpu_memory_mb=gpu_mem,
        gpu_temp=gpu_temp,
    )


class SystemSampler:
    """Samples system metrics on a background thread at a fixed interval."""

    def __init__(
        self,
        interval_ms: int = 500,
        probe: Callable[[], SystemSample] | None = None,
    ) -> None:
        self.interval_ms = interval_ms if interval_ms > 0 else 500
        self._probe = probe or take_sample
        self._lock = threading.Lock()
        self._samples: list[SystemSample] = []
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def __enter__(self) -> SystemSampler:
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def start(self) -> None:
        """Begin periodic sampling in the background."""
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, daemon=True)
        self._thread.start()

    def _loop(self) -> None:
        interval = self.interval_ms / 1000.0
        while not self._stop_event.wait(interval):
            sample = self._probe()
            with self._lock:
                self._samples.append(sample)

    def stop(self) -> SystemMetrics:
        """End sampling and summarise what was collected."""
        if self._thread is not None:
            self._stop_event.set()
            self._thread.join()
            self._thread = None

        with self._lock:
            samples = list(self._samples)

        if len(samples) < 3:
            return SystemMetrics(
                available=False,
                sample_count=len(samples),
                sample_interval_ms=self.interval_ms,
            )

        n = len(samples)
        return SystemMetrics(
            available=True,
            peak_memory_mb=max(0, *(s.memory_mb for s in samples)),
            peak_gpu_memory_mb=max(0, *(s.gpu_memory_mb for s in samples)),
            mean_cpu_pct=sum(s.cpu_percent for s in samples) / n,
            mean_gpu_pct=sum(s.gpu_percent for s in samples) / n,
            peak_gpu_pct=max(0.0, *(s.gpu_percent for s in samples)),
            thermal_throttled=any(s.gpu_temp > _THROTTLE_TEMP_C for s in samples),
            sample_count=n,
            sample_interval_ms=self.interval_ms,
        )