"""Expanding a suite into ordered jobs, scenario hashing and job filtering."""

from __future__ import annotations

import hashlib
import json
from itertools import product
from typing import Any, Iterable, Sequence

from sparkbench.suite.types import BenchmarkSuite, JobSpec, PromptSet, Scenario

_JSON_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def expand_jobs(suite: BenchmarkSuite) -> list[JobSpec]:
    """Expand a suite into jobs ordered by model, quant, scenario, combination, repeat."""
    jobs = []
    defaults = suite.defaults
    for model in suite.models:
        for quant in model.quants:
            for scenario in suite.scenarios:
                sid = scenario_id(scenario)
                multi_combo = (
                    len(scenario.context_sizes) > 1
                    or len(scenario.batch_sizes) > 1
                    or len(scenario.parallel_slots) > 1
                )
                combos = product(
                    scenario.context_sizes,
                    scenario.batch_sizes,
                    scenario.parallel_slots,
                    range(1, scenario.repeat + 1),
                )
                for ctx, batch, parallel, run in combos:
                    if multi_combo:
                        job_id = (
                            f"{model.alias}-{quant}-{scenario.name}"
                            f"-ctx{ctx}-b{batch}-p{parallel}-{run}"
                        )
                    else:
                        job_id = f"{model.alias}-{quant}-{scenario.name}-{run}"
                    jobs.append(
                        JobSpec(
                            job_id=job_id,
                            model_spec=model,
                            quant=quant,
                            scenario=scenario,
                            run_index=run,
                            scenario_id=sid,
                            context_size=ctx,
                            batch_size=batch,
                            parallel_slots=parallel,
                            max_tokens=scenario.max_tokens,
                            temperature=defaults.temperature,
                            warmup_prompts=defaults.warmup_prompts,
                            measure_prompts=defaults.measure_prompts,
                            cooldown_secs=defaults.cooldown_seconds,
                            timeout=defaults.timeout,
                        )
                    )
    return jobs


def _list_or_null(values: list[Any]) -> list[Any] | None:
    return list(values) if values else None


def _prompt_set_content(prompts: PromptSet) -> dict[str, Any]:
    content: dict[str, Any] = {}
    if prompts.builtin:
        content["builtin"] = prompts.builtin
    if prompts.file:
        content["file"] = prompts.file
    if prompts.inline:
        content["inline"] = list(prompts.inline)
    return content


def _canonical_json(value: Any) -> str:
    text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    for char, escape in _JSON_ESCAPES.items():
        text = text.replace(char, escape)
    return text


def scenario_id(scenario: Scenario) -> str:
    """A stable 12-hex-character content hash of a scenario's settings and prompts."""
    content = {
        "name": scenario.name,
        "context_sizes": _list_or_null(scenario.context_sizes),
        "batch_sizes": _list_or_null(scenario.batch_sizes),
        "parallel_slots": _list_or_null(scenario.parallel_slots),
        "max_tokens": scenario.max_tokens,
        "repeat": scenario.repeat,
        "prompts": _prompt_set_content(scenario.prompts),
    }
    digest = hashlib.sha256(_canonical_json(content).encode("utf-8")).digest()
    return digest[:6].hex()


def filter_jobs(jobs: Iterable[JobSpec], patterns: Sequence[str] | None) -> list[JobSpec]:
    """Jobs whose ID contains any of the patterns; all jobs when there are none."""
    jobs = list(jobs)
    if not patterns:
        return jobs
    return [job for job in jobs if any(p in job.job_id for p in patterns)]