"""Terminal rendering of run results, quick results and cross-run comparisons."""

from __future__ import annotations

import os
import re
import sys
from datetime import timedelta
from typing import Iterable

from sparkbench.durations import format_duration
from sparkbench.job.types import JobResult, JobStatus
from sparkbench.metrics.stats import ThroughputStats
from sparkbench.store import RunResult

_ANSI = re.compile(r"\x1b\[[0-9;]*m")
_RESET = "\x1b[0m"

_HEADER = "1;94"
_LABEL = "1;92"
_DIM = "2"
_ERROR = "1;91"
_BORDER = "38;5;240"

_MISSING = "\u2014"


def _color_enabled() -> bool:
    if os.environ.get("NO_COLOR"):
        return False
    stream = sys.stdout
    return bool(getattr(stream, "isatty", None) and stream.isatty())


def _style(code: str, text: str) -> str:
    if not text or not _color_enabled():
        return text
    return f"\x1b[{code}m{text}{_RESET}"


def _visible_len(text: str) -> int:
    return len(_ANSI.sub("", text))


def _pad_right(text: str, width: int) -> str:
    length = _visible_len(text)
    if length >= width:
        return text
    return text + " " * (width - length)


def _box(lines: list[str]) -> str:
    """Surround lines with a rounded border and one column of horizontal padding."""
    width = max((_visible_len(line) for line in lines), default=0)
    edge = "\u2500" * (width + 2)
    side = _style(_BORDER, "\u2502")
    out = [_style(_BORDER, f"\u256d{edge}\u256e")]
    out.extend(f"{side} {_pad_right(line, width)} {side}" for line in lines)
    out.append(_style(_BORDER, f"\u2570{edge}\u256f"))
    return "\n".join(out)


def _round_seconds(value: timedelta) -> timedelta:
    micros = value // timedelta(microseconds=1)
    half = 500_000
    if micros >= 0:
        seconds = (micros + half) // 1_000_000
    else:
        seconds = -((-micros + half) // 1_000_000)
    return timedelta(seconds=seconds)


def _run_duration(result: RunResult) -> timedelta:
    if result.started_at is None or result.completed_at is None:
        return timedelta(0)
    return _round_seconds(result.completed_at - result.started_at)


def _format_throughput(stats: ThroughputStats, unit: str) -> str:
    if stats.samples == 0:
        return _style(_DIM, "n/a")
    return (
        f"{stats.median:.1f} {unit} median (\u00b1{stats.stddev:.1f}, "
        f"p95: {stats.p95:.1f}, n={stats.samples})"
    )


def _count_statuses(jobs: Iterable[JobResult]) -> tuple[int, int, int]:
    ok = failed = skipped = 0
    for job in jobs:
        if job.status == JobStatus.OK:
            ok += 1
        elif job.status == JobStatus.FAILED:
            failed += 1
        elif job.status == JobStatus.SKIPPED:
            skipped += 1
    return ok, failed, skipped


def _format_job(job: JobResult) -> str:
    if job.status == JobStatus.FAILED:
        status = _style(_ERROR, "FAIL")
    elif job.status == JobStatus.SKIPPED:
        status = _style(_DIM, "SKIP")
    else:
        status = _style(_LABEL, "OK")

    lines = [f"  [{status}] {job.job_id}\n"]
    if job.status == JobStatus.OK:
        lines.append(f"    Prompt Eval: {_format_throughput(job.prompt_eval, 'tok/s')}\n")
        lines.append(f"    Generation:  {_format_throughput(job.generation, 'tok/s')}\n")
        lines.append(f"    TTFT:        {_format_throughput(job.first_token_time, 'ms')}\n")
    elif job.status == JobStatus.FAILED and job.error is not None:
        lines.append(f"    Error: {job.error.message} ({job.error.type})\n")
    return "".join(lines)


def terminal(result: RunResult) -> str:
    """Render a run result as a styled terminal report."""
    parts = [
        _style(_HEADER, result.suite_name),
        "\n",
        _style(
            _DIM,
            f"Run: {result.run_id}  |  {len(result.jobs)} jobs  |  "
            f"{format_duration(_run_duration(result))}",
        ),
        "\n",
        "=" * 60,
        "\n\n",
    ]
    for job in result.jobs:
        parts.append(_format_job(job))
        parts.append("\n")

    ok, failed, skipped = _count_statuses(result.jobs)
    parts.append(_style(_DIM, f"Summary: {ok} OK, {failed} failed, {skipped} skipped"))
    parts.append("\n")
    return "".join(parts)


def quick_result(job: JobResult) -> str:
    """Render a compact result for a quick benchmark."""
    if job.status != JobStatus.OK:
        message = job.error.message if job.error is not None else ""
        return _style(_ERROR, f"Failed: {message}") + "\n"

    header = _style(_HEADER, f"Quick Benchmark: {job.model.get('normalized_ref', '')}")

    rows = [
        ("Prompt Processing", _format_throughput(job.prompt_eval, "tok/s")),
        ("Generation", _format_throughput(job.generation, "tok/s")),
        ("Time to First Token", _format_throughput(job.first_token_time, "ms")),
        ("Model Load Time", f"{job.model_load_time_ms / 1000:.1f}s"),
    ]
    metrics = job.system_metrics
    if metrics is not None and metrics.available:
        rows.append(("Peak Memory", f"{metrics.peak_memory_mb / 1024:.1f} GB"))

    label_width = max(len(label) for label, _ in rows)
    lines = [
        f"  {_style(_LABEL, _pad_right(label, label_width))}  {value}"
        for label, value in rows
    ]
    return f"{header}\n\n{_box(lines)}\n"


_GENERATION = ("generation", "gen", "")
_PROMPT = ("prompt_eval", "prompt")


def _select_metric(job: JobResult, metric: str) -> ThroughputStats:
    if metric in _PROMPT:
        return job.prompt_eval
    if metric == "ttft":
        return job.first_token_time
    if metric == "e2e":
        return job.end_to_end
    return job.generation


def _metric_title(metric: str) -> str:
    if metric in _PROMPT:
        return "Prompt Eval Speed (tok/s)"
    if metric == "ttft":
        return "Time to First Token (ms, median)"
    if metric == "e2e":
        return "End-to-End Latency (ms, median)"
    return "Generation Speed (tok/s)"


def _format_value(stats: ThroughputStats, metric: str) -> str:
    if stats.samples == 0:
        return _MISSING
    if metric in ("ttft", "e2e"):
        return f"{stats.median:.0f}"
    return f"{stats.median:.1f}"


def compare(results: Iterable[RunResult], metric: str = "") -> str:
    """Render a model by quantization table of one metric across runs."""
    jobs = [
        job
        for result in results
        for job in result.jobs
        if job.status == JobStatus.OK
    ]
    if not jobs:
        return _style(_DIM, "No successful jobs to compare.")

    models: list[str] = []
    quants: list[str] = []
    lookup: dict[tuple[str, str], ThroughputStats] = {}
    for job in jobs:
        model = str(job.model.get("normalized_ref") or "")
        quant = str(job.model.get("quant") or "")
        if model not in models:
            models.append(model)
        if quant not in quants:
            quants.append(quant)
        stats = _select_metric(job, metric)
        existing = lookup.get((model, quant))
        if existing is None or stats.samples > existing.samples:
            lookup[(model, quant)] = stats

    model_width = 24
    for model in models:
        if len(model) > model_width:
            model_width = len(model) + 2
    col_width = 10

    lines = [_style(_HEADER, _metric_title(metric))]
    lines.append(
        _pad_right("Model", model_width) + "".join(_pad_right(q, col_width) for q in quants)
    )
    lines.append("-" * (model_width + col_width * len(quants)))

    for model in models:
        name = model
        if len(name) > model_width - 2:
            name = name[: model_width - 5] + "..."
        cells = []
        for quant in quants:
            stats = lookup.get((model, quant))
            if stats is None:
                cells.append(_pad_right(_style(_DIM, _MISSING), col_width))
            else:
                cells.append(_pad_right(_format_value(stats, metric), col_width))
        lines.append(_pad_right(name, model_width) + "".join(cells))

    return "\n".join(lines) + "\n"