"""Run results as JSON and CSV."""

from __future__ import annotations

import csv
import io
import json
from typing import Iterable

from sparkbench.job.types import JobResult
from sparkbench.store import RunResult

_HEADER = [
    "job_id", "scenario", "run_index", "status",
    "model_ref", "quant",
    "context_size", "batch_size", "parallel_slots",
    "prompt_eval_tok_s_mean", "prompt_eval_tok_s_median",
    "generation_tok_s_mean", "generation_tok_s_median",
    "ttft_ms_mean", "ttft_ms_median", "ttft_ms_p95",
    "e2e_ms_mean", "e2e_ms_median",
    "model_load_ms",
]


def to_json(result: RunResult) -> str:
    """The run result as compact JSON."""
    return json.dumps(result.to_dict(), separators=(",", ":"), ensure_ascii=False)


def to_json_pretty(result: RunResult) -> str:
    """The run result as JSON indented by two spaces."""
    return json.dumps(result.to_dict(), indent=2, ensure_ascii=False)


def _ff(value: float) -> str:
    return f"{value:.2f}"


def _int(value) -> str:
    try:
        return str(int(value or 0))
    except (TypeError, ValueError):
        return "0"


def _row(job: JobResult) -> list[str]:
    config = job.effective_config
    return [
        job.job_id,
        job.scenario_name,
        str(job.run_index),
        job.status.value if job.status else "",
        str(job.model.get("normalized_ref") or ""),
        str(job.model.get("quant") or ""),
        _int(config.get("context_size")),
        _int(config.get("batch_size")),
        _int(config.get("parallel")),
        _ff(job.prompt_eval.mean),
        _ff(job.prompt_eval.median),
        _ff(job.generation.mean),
        _ff(job.generation.median),
        _ff(job.first_token_time.mean),
        _ff(job.first_token_time.median),
        _ff(job.first_token_time.p95),
        _ff(job.end_to_end.mean),
        _ff(job.end_to_end.median),
        _ff(job.model_load_time_ms),
    ]


def to_csv(result: RunResult) -> str:
    """The run result as CSV, one row per job after a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(_HEADER)
    writer.writerows(_row(job) for job in result.jobs)
    return buffer.getvalue()


def csv_jobs(jobs: Iterable[JobResult]) -> str:
    """Job results alone as CSV."""
    return to_csv(RunResult(jobs=list(jobs)))