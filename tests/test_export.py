import csv
import io
import json
from datetime import datetime, timezone

from sparkbench.job.types import JobError, JobResult, JobStatus
from sparkbench.metrics.stats import ThroughputStats
from sparkbench.report.export import csv_jobs, to_csv, to_json, to_json_pretty
from sparkbench.store import RunResult


def _run_result() -> RunResult:
    return RunResult(
        schema_version=1,
        run_id="run-20260227-233000",
        suite_name="Test Suite",
        started_at=datetime(2026, 2, 27, 23, 30, 0, tzinfo=timezone.utc),
        completed_at=datetime(2026, 2, 27, 23, 58, 42, tzinfo=timezone.utc),
        jobs=[
            JobResult(
                job_id="model-a-Q4_K_M-throughput-1",
                scenario_name="throughput",
                run_index=1,
                status=JobStatus.OK,
                model={"normalized_ref": "owner/model-a:Q4_K_M", "quant": "Q4_K_M"},
                prompt_eval=ThroughputStats(mean=1842.3, median=1838.0, samples=10),
                generation=ThroughputStats(mean=48.7, median=48.9, samples=10),
                first_token_time=ThroughputStats(mean=131.2, median=127.0, p95=203.0, samples=10),
                model_load_time_ms=4200,
            ),
            JobResult(
                job_id="model-a-Q4_K_M-throughput-2",
                scenario_name="throughput",
                run_index=2,
                status=JobStatus.FAILED,
                error=JobError(type="timeout", message="exceeded 5m timeout"),
            ),
        ],
    )


def test_json():
    data = to_json(_run_result())
    assert len(data) > 0
    assert "run-20260227-233000" in data
    assert "\n" not in data


def test_json_parses_back():
    decoded = json.loads(to_json(_run_result()))
    assert decoded["suite_name"] == "Test Suite"
    assert len(decoded["jobs"]) == 2
    assert decoded["jobs"][1]["status"] == "failed"


def test_json_pretty():
    data = to_json_pretty(_run_result())
    assert "\n" in data
    assert json.loads(data) == json.loads(to_json(_run_result()))


def test_csv():
    data = to_csv(_run_result())
    lines = data.strip().split("\n")
    assert len(lines) == 3
    assert "job_id" in lines[0]
    assert lines[0].count(",") == lines[1].count(",")


def test_csv_values():
    rows = list(csv.reader(io.StringIO(to_csv(_run_result()))))
    header, first, second = rows
    record = dict(zip(header, first))
    assert record["job_id"] == "model-a-Q4_K_M-throughput-1"
    assert record["status"] == "ok"
    assert record["quant"] == "Q4_K_M"
    assert record["generation_tok_s_median"] == "48.90"
    assert record["ttft_ms_p95"] == "203.00"
    assert record["model_load_ms"] == "4200.00"
    assert record["context_size"] == "0"
    assert dict(zip(header, second))["status"] == "failed"


def test_csv_jobs_matches_run_csv():
    run = _run_result()
    assert csv_jobs(run.jobs) == to_csv(run)


def test_csv_empty_has_only_header():
    lines = to_csv(RunResult()).strip().split("\n")
    assert len(lines) == 1
    assert lines[0].startswith("job_id,scenario,run_index,status")