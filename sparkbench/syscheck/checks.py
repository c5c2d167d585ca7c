"""Pre-flight system checks: idle state, thermal state and available resources."""

from __future__ import annotations

import mmap
import os
import shutil
import subprocess
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable

from sparkbench.job.types import Cancelled

_MIB = 1024 * 1024


class _ProbeError(RuntimeError):
    """A system reading could not be taken."""


@dataclass
class CheckResult:
    """Outcome of a single pre-flight check."""

    name: str
    failed: bool = False
    message: str = ""
    warning: str = ""


def _run(args: list[str]) -> str:
    completed = subprocess.run(args, capture_output=True, text=True, check=True)
    return completed.stdout


def _wait(seconds: float, cancel: threading.Event | None) -> None:
    if cancel is None:
        time.sleep(seconds)
    elif cancel.wait(seconds):
        raise Cancelled("sampling cancelled")


def _sample_cpu_darwin(duration: float, cancel: threading.Event | None) -> float:
    if cancel is not None and cancel.is_set():
        raise Cancelled("sampling cancelled")
    samples = max(int(duration), 1)
    try:
        output = _run(["top", "-l", str(samples + 1), "-n", "0", "-s", "1"])
    except (OSError, subprocess.SubprocessError) as exc:
        raise _ProbeError(f"top: {exc}") from exc

    used = []
    for line in output.split("\n"):
        if "CPU usage:" not in line:
            continue
        parts = line.split()
        for previous, part in zip(parts, parts[1:]):
            if part.endswith("idle"):
                try:
                    used.append(100.0 - float(previous.rstrip("%")))
                except ValueError:
                    pass
    if not used:
        raise _ProbeError("could not parse CPU usage from top output")
    return sum(used) / len(used)


def _read_proc_stat() -> tuple[int, int]:
    with open("/proc/stat", encoding="utf-8") as handle:
        content = handle.read()
    for line in content.split("\n"):
        if not line.startswith("cpu "):
            continue
        fields = line.split()
        if len(fields) < 5:
            raise _ProbeError("unexpected /proc/stat format")
        values = []
        for text in fields[1:]:
            try:
                values.append(int(text))
            except ValueError:
                values.append(0)
        return values[3], sum(values)
    raise _ProbeError("/proc/stat: no cpu line found")


def _sample_cpu_linux(duration: float, cancel: threading.Event | None) -> float:
    idle1, total1 = _read_proc_stat()
    _wait(duration, cancel)
    idle2, total2 = _read_proc_stat()
    d_total = total2 - total1
    d_idle = idle2 - idle1
    if d_total == 0:
        return 0.0
    return (1.0 - d_idle / d_total) * 100.0


def _sample_cpu(duration: float, cancel: threading.Event | None) -> float:
    """Average CPU utilisation over the duration, in percent."""
    if sys.platform == "darwin":
        return _sample_cpu_darwin(duration, cancel)
    if sys.platform.startswith("linux"):
        return _sample_cpu_linux(duration, cancel)
    raise _ProbeError(f"unsupported platform: {sys.platform}")


def _first_nvidia_value(query: str) -> float:
    try:
        output = _run(["nvidia-smi", f"--query-gpu={query}", "--format=csv,noheader,nounits"])
    except (OSError, subprocess.SubprocessError) as exc:
        raise _ProbeError(f"nvidia-smi not available: {exc}") from exc
    return float(output.strip().split("\n")[0].strip())


def _sample_gpu() -> float:
    """Current GPU utilisation in percent of the first GPU."""
    return _first_nvidia_value("utilization.gpu")


def _gpu_temperature() -> float:
    """Current temperature of the first GPU in degrees Celsius."""
    return _first_nvidia_value("temperature.gpu")


def parse_vm_stat_value(line: str) -> int:
    """Parse the page count from a vm_stat line such as "Pages free:  1234."; 0 if unparsable."""
    parts = line.split(":")
    if len(parts) < 2:
        return 0
    text = parts[1].strip()
    if text.endswith("."):
        text = text[:-1]
    try:
        return int(text)
    except ValueError:
        return 0


def _free_memory_darwin() -> int:
    try:
        total = int(_run(["sysctl", "-n", "hw.memsize"]).strip())
    except (OSError, subprocess.SubprocessError) as exc:
        raise _ProbeError(f"sysctl: {exc}") from exc
    try:
        output = _run(["vm_stat"])
    except (OSError, subprocess.SubprocessError):
        return total // (_MIB * 2)

    free_pages = inactive_pages = 0
    for line in output.split("\n"):
        if "Pages free:" in line:
            free_pages = parse_vm_stat_value(line)
        if "Pages inactive:" in line:
            inactive_pages = parse_vm_stat_value(line)
    return (free_pages + inactive_pages) * mmap.PAGESIZE // _MIB


def _free_memory_linux() -> int:
    with open("/proc/meminfo", encoding="utf-8") as handle:
        content = handle.read()
    for line in content.split("\n"):
        if line.startswith("MemAvailable:"):
            fields = line.split()
            if len(fields) >= 2:
                try:
                    return int(fields[1]) // 1024
                except ValueError:
                    return 0
    raise _ProbeError("MemAvailable not found in /proc/meminfo")


def free_memory_mb() -> int:
    """Memory available to new processes, in MB."""
    if sys.platform == "darwin":
        return _free_memory_darwin()
    if sys.platform.startswith("linux"):
        return _free_memory_linux()
    raise _ProbeError(f"unsupported platform: {sys.platform}")


def free_disk_space_mb(path: str) -> int:
    """Free disk space in MB on the filesystem holding path, or its nearest existing parent."""
    directory = str(path)
    while not os.path.exists(directory):
        parent = directory.rstrip("/")
        index = parent.rfind("/")
        if index <= 0:
            directory = "/"
            break
        directory = parent[:index]
    try:
        stat = os.statvfs(directory)
    except OSError as exc:
        raise _ProbeError(f"statfs: {exc}") from exc
    return stat.f_bavail * stat.f_frsize // _MIB


_PROBE_ERRORS = (_ProbeError, OSError, ValueError, subprocess.SubprocessError, Cancelled)


@dataclass
class IdleCheck:
    """Checks that CPU and GPU are idle enough to benchmark."""

    max_cpu_percent: float = 15.0
    max_gpu_percent: float = 10.0
    sample_duration: float = 5.0
    cpu_sampler: Callable[[float, threading.Event | None], float] = field(
        default=_sample_cpu, repr=False, compare=False
    )
    gpu_sampler: Callable[[], float] = field(default=_sample_gpu, repr=False, compare=False)

    def run(self, cancel: threading.Event | None = None) -> CheckResult:
        """Sample CPU (and GPU, where available) utilisation and compare with thresholds."""
        max_cpu = self.max_cpu_percent or 15.0
        max_gpu = self.max_gpu_percent or 10.0
        duration = self.sample_duration or 5.0

        result = CheckResult(name="idle")
        try:
            cpu = self.cpu_sampler(duration, cancel)
        except _PROBE_ERRORS as exc:
            result.warning = f"Could not measure CPU utilization: {exc}"
            return result

        if cpu > max_cpu:
            result.failed = True
            result.message = f"CPU utilization at {cpu:.1f}% (threshold: {max_cpu:.0f}%)"
            return result
        result.message = f"CPU idle ({cpu:.1f}% utilization)"

        try:
            gpu = self.gpu_sampler()
        except _PROBE_ERRORS:
            return result

        if gpu > max_gpu:
            result.failed = True
            result.message = f"GPU utilization at {gpu:.1f}% (threshold: {max_gpu:.0f}%)"
            return result
        result.message += f", GPU idle ({gpu:.1f}% utilization)"
        return result


@dataclass
class ThermalCheck:
    """Checks that the GPU is not hot enough to throttle."""

    max_gpu_temp_c: float = 80.0
    temperature_probe: Callable[[], float] = field(
        default=_gpu_temperature, repr=False, compare=False
    )

    def run(self, cancel: threading.Event | None = None) -> CheckResult:
        """Read the GPU temperature and compare with the threshold."""
        max_temp = self.max_gpu_temp_c or 80.0
        result = CheckResult(name="thermal")
        try:
            temp = self.temperature_probe()
        except _PROBE_ERRORS:
            result.message = "GPU temperature not available (nvidia-smi not found)"
            result.warning = "Cannot check thermal state without nvidia-smi"
            return result

        if temp > max_temp:
            result.failed = True
            result.message = (
                f"GPU temperature at {temp:.0f}°C (threshold: {max_temp:.0f}°C)"
                " — thermal throttling likely"
            )
            return result

        result.message = f"No thermal throttling detected (GPU: {temp:.0f}°C)"
        return result


@dataclass
class ResourceCheck:
    """Checks free memory, free disk space and that llama-server is installed."""

    min_free_memory_mb: int = 4096
    min_free_disk_mb: int = 1024
    result_dir: str = ""
    memory_probe: Callable[[], int] = field(default=free_memory_mb, repr=False, compare=False)
    disk_probe: Callable[[str], int] = field(
        default=free_disk_space_mb, repr=False, compare=False
    )
    locate: Callable[[str], str | None] = field(default=shutil.which, repr=False, compare=False)

    def run(self, cancel: threading.Event | None = None) -> CheckResult:
        """Check resources and report the first shortfall, if any."""
        min_memory = self.min_free_memory_mb or 4096
        min_disk = self.min_free_disk_mb or 1024

        result = CheckResult(name="resources")
        messages = []

        try:
            free_mb = self.memory_probe()
        except _PROBE_ERRORS as exc:
            result.warning = f"Could not check free memory: {exc}"
        else:
            if free_mb < min_memory:
                result.failed = True
                result.message = (
                    f"Insufficient memory: {free_mb} MB free, need {min_memory} MB"
                )
                return result
            messages.append(f"Sufficient memory ({free_mb} MB available)")

        if self.result_dir:
            try:
                free_disk = self.disk_probe(self.result_dir)
            except _PROBE_ERRORS as exc:
                result.warning = f"Could not check disk space: {exc}"
            else:
                if free_disk < min_disk:
                    result.failed = True
                    result.message = (
                        f"Insufficient disk space: {free_disk} MB free, need {min_disk} MB"
                    )
                    return result
                messages.append(f"Sufficient disk space ({free_disk} MB free)")

        if not self.locate("llama-server"):
            result.failed = True
            result.message = "llama-server not found in PATH"
            return result
        messages.append("llama-server found")

        result.message = "; ".join(messages)
        return result