import subprocess
import threading
from unittest.mock import patch

import pytest

from sparkbench.metrics.system import (
    SystemSample,
    SystemSampler,
    sample_memory,
    sample_nvidia_smi,
    take_sample,
)


def _counting_probe(sample, needed=3):
    reached = threading.Event()
    calls = []

    def probe():
        calls.append(1)
        if len(calls) >= needed:
            reached.set()
        return sample

    return probe, reached


def test_sparse_samples_not_available():
    sampler = SystemSampler(500)
    result = sampler.stop()
    assert result.available is False
    assert result.sample_count == 0
    assert result.sample_interval_ms == 500


def test_lifecycle_collects_samples():
    sample = SystemSample(cpu_percent=5.0, memory_mb=2048, gpu_percent=40.0, gpu_memory_mb=512, gpu_temp=60.0)
    probe, reached = _counting_probe(sample)
    sampler = SystemSampler(10, probe)
    sampler.start()
    assert reached.wait(5)
    result = sampler.stop()

    assert result.available is True
    assert result.sample_count >= 3
    assert result.sample_interval_ms == 10
    assert result.peak_memory_mb == 2048
    assert result.peak_gpu_memory_mb == 512
    assert result.mean_cpu_pct == pytest.approx(5.0)
    assert result.mean_gpu_pct == pytest.approx(40.0)
    assert result.peak_gpu_pct == pytest.approx(40.0)
    assert result.thermal_throttled is False


def test_thermal_throttle_detected():
    probe, reached = _counting_probe(SystemSample(gpu_temp=95.0))
    with SystemSampler(10, probe) as sampler:
        assert reached.wait(5)
    result = sampler.stop()
    assert result.thermal_throttled is True
    assert result.sample_count >= 3


@pytest.mark.parametrize("interval", [0, -5])
def test_default_interval(interval):
    assert SystemSampler(interval).interval_ms == 500


def test_sample_nvidia_smi_parses_output():
    completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="45, 1024, 67\n")
    with patch("subprocess.run", return_value=completed):
        assert sample_nvidia_smi() == (45.0, 1024, 67.0)


def test_sample_nvidia_smi_missing_tool():
    with patch("subprocess.run", side_effect=FileNotFoundError):
        assert sample_nvidia_smi() == (0.0, 0, 0.0)


def test_sample_nvidia_smi_short_output():
    completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="45\n")
    with patch("subprocess.run", return_value=completed):
        assert sample_nvidia_smi() == (0.0, 0, 0.0)


def test_take_sample_uses_gpu_reading():
    completed = subprocess.CompletedProcess(args=[], returncode=0, stdout="12, 300, 55\n")
    with patch("subprocess.run", return_value=completed):
        sample = take_sample()
    assert sample.gpu_percent == 12.0
    assert sample.gpu_memory_mb == 300
    assert sample.gpu_temp == 55.0
    assert sample.cpu_percent == 0.0


def test_sample_memory_zero_off_linux():
    with patch("sys.platform", "darwin"):
        assert sample_memory() == 0