import json
import os
import re
from datetime import datetime, timezone

import pytest

from sparkbench.job.types import JobError, JobResult, JobStatus
from sparkbench.metrics.stats import ThroughputStats
from sparkbench.store import (
    RunResult,
    RunSummary,
    Store,
    StoreError,
    StoreFilter,
    generate_run_id,
)


def _run_result():
    return RunResult(
        schema_version=1,
        run_id="run-20260227-233000",
        suite_name="Test Suite",
        dirty_mode="abort",
        started_at=datetime(2026, 2, 27, 23, 30, tzinfo=timezone.utc),
        completed_at=datetime(2026, 2, 27, 23, 58, 42, tzinfo=timezone.utc),
        jobs=[
            JobResult(
                schema_version=1,
                job_id="model-a-Q4_K_M-throughput-1",
                scenario_name="throughput",
                scenario_id="abc123def456",
                run_index=1,
                status=JobStatus.OK,
                model={"normalized_ref": "owner/model-a:Q4_K_M", "quant": "Q4_K_M"},
                prompt_eval=ThroughputStats(mean=1842.3, median=1838.0, samples=10),
                generation=ThroughputStats(mean=48.7, median=48.9, samples=10),
            ),
            JobResult(
                schema_version=1,
                job_id="model-a-Q4_K_M-throughput-2",
                scenario_name="throughput",
                run_index=2,
                status=JobStatus.FAILED,
                error=JobError(type="timeout", message="exceeded 5m"),
            ),
        ],
    )


def test_save_and_load_round_trip(tmp_path):
    store = Store(str(tmp_path))
    result = _run_result()
    store.save_run(result)

    loaded = store.load(result.run_id)
    assert loaded.run_id == result.run_id
    assert loaded.suite_name == "Test Suite"
    assert len(loaded.jobs) == 2
    assert loaded.jobs[0].prompt_eval.mean == 1842.3
    assert loaded.jobs[1].status == JobStatus.FAILED
    assert loaded.jobs[1].error.type == "timeout"
    assert loaded.started_at == result.started_at


def test_save_run_writes_all_files(tmp_path):
    store = Store(str(tmp_path))
    result = _run_result()
    result.hardware = {"gpu": "test-gpu"}
    store.save_run(result)

    run_dir = store.run_dir(result.run_id)
    summary = json.loads((tmp_path / result.run_id / "summary.json").read_text())
    assert summary["job_count"] == 2
    assert summary["failed_count"] == 1
    assert json.loads((tmp_path / result.run_id / "system.json").read_text()) == {"gpu": "test-gpu"}
    assert sorted(os.listdir(os.path.join(run_dir, "jobs"))) == [
        "model-a-Q4_K_M-throughput-1.json",
        "model-a-Q4_K_M-throughput-2.json",
    ]


def test_save_job_incremental(tmp_path):
    store = Store(str(tmp_path))
    run_id = "run-20260227-120000"
    store.save_job(run_id, JobResult(schema_version=1, job_id="test-job-1", status=JobStatus.OK))

    loaded = store.load_job(run_id, "test-job-1")
    assert loaded.job_id == "test-job-1"
    assert loaded.status == JobStatus.OK


def test_save_config_and_system(tmp_path):
    store = Store(str(tmp_path))
    store.save_config("run-1", b"name: test\n")
    store.save_system("run-1", {"cpu": "x"})
    assert (tmp_path / "run-1" / "config.yaml").read_bytes() == b"name: test\n"
    assert json.loads((tmp_path / "run-1" / "system.json").read_text()) == {"cpu": "x"}


def _save_two_runs(store):
    r1 = _run_result()
    r1.run_id = "run-20260227-100000"
    r1.started_at = datetime(2026, 2, 27, 10, tzinfo=timezone.utc)
    store.save_run(r1)

    r2 = _run_result()
    r2.run_id = "run-20260227-120000"
    r2.suite_name = "Another Suite"
    r2.started_at = datetime(2026, 2, 27, 12, tzinfo=timezone.utc)
    r2.jobs[0].model = {"normalized_ref": "other/model-b:Q8_0"}
    r2.jobs[0].job_id = "model-b-Q8_0-throughput-1"
    r2.jobs[1].job_id = "model-b-Q8_0-throughput-2"
    store.save_run(r2)


def test_list(tmp_path):
    store = Store(str(tmp_path))
    _save_two_runs(store)

    summaries = store.list(StoreFilter())
    assert len(summaries) == 2
    assert summaries[0].run_id == "run-20260227-120000"

    after = datetime(2026, 2, 27, 11, tzinfo=timezone.utc)
    filtered = store.list(StoreFilter(after=after))
    assert [s.run_id for s in filtered] == ["run-20260227-120000"]


def test_list_before_filter(tmp_path):
    store = Store(str(tmp_path))
    _save_two_runs(store)
    before = datetime(2026, 2, 27, 11, tzinfo=timezone.utc)
    assert [s.run_id for s in store.list(StoreFilter(before=before))] == ["run-20260227-100000"]


def test_list_model_filter(tmp_path):
    store = Store(str(tmp_path))
    _save_two_runs(store)
    assert [s.run_id for s in store.list(StoreFilter(model="owner/"))] == ["run-20260227-100000"]
    assert [s.run_id for s in store.list(StoreFilter(model="model-b"))] == ["run-20260227-120000"]


def test_list_empty_dir(tmp_path):
    assert Store(str(tmp_path)).list(StoreFilter()) == []


def test_list_missing_dir(tmp_path):
    assert Store(str(tmp_path / "absent")).list() == []


def test_list_ignores_other_entries(tmp_path):
    store = Store(str(tmp_path))
    _save_two_runs(store)
    (tmp_path / "other").mkdir()
    (tmp_path / "run-file").write_text("x")
    (tmp_path / "run-broken").mkdir()
    assert len(store.list()) == 2


def test_list_falls_back_to_results(tmp_path):
    store = Store(str(tmp_path))
    result = _run_result()
    store.save_run(result)
    (tmp_path / result.run_id / "summary.json").write_text("not json")

    summaries = store.list()
    assert summaries == [
        RunSummary(
            run_id=result.run_id,
            suite_name="Test Suite",
            started_at=result.started_at,
            completed_at=result.completed_at,
            job_count=2,
            failed_count=1,
        )
    ]


def test_load_missing_run(tmp_path):
    with pytest.raises(StoreError, match="reading results for run-x"):
        Store(str(tmp_path)).load("run-x")


def test_load_corrupt_run(tmp_path):
    (tmp_path / "run-x").mkdir()
    (tmp_path / "run-x" / "results.json").write_text("{broken")
    with pytest.raises(StoreError, match="parsing results for run-x"):
        Store(str(tmp_path)).load("run-x")


def test_load_job_missing(tmp_path):
    with pytest.raises(StoreError, match="reading job run-x/j1"):
        Store(str(tmp_path)).load_job("run-x", "j1")


def test_generate_run_id():
    run_id = generate_run_id()
    assert len(run_id) >= 19
    assert run_id.startswith("run-")
    assert re.fullmatch(r"run-\d{8}-\d{6}", run_id)


def test_run_summary_round_trip():
    summary = RunSummary(
        run_id="run-1",
        suite_name="s",
        started_at=datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc),
        job_count=3,
        failed_count=1,
    )
    assert RunSummary.from_dict(summary.to_dict()) == summary