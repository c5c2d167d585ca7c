"""Loading, defaulting and validating benchmark suites."""

from __future__ import annotations

import json
from datetime import timedelta

import yaml

from sparkbench.suite.types import BenchmarkSuite, PromptSet

_VALID_DIRTY_MODES = ("", "abort", "warn", "force")


class SuiteError(Exception):
    """Raised when a suite cannot be read, parsed or validated."""


def load_suite(path: str) -> BenchmarkSuite:
    """Read and parse a benchmark suite from a YAML file."""
    try:
        with open(path, "rb") as handle:
            data = handle.read()
    except OSError as exc:
        raise SuiteError(f"reading config: {exc}") from exc
    return parse_suite(data)


def parse_suite(data: bytes | str) -> BenchmarkSuite:
    """Parse a suite from YAML text, fill in defaults and validate it."""
    try:
        document = yaml.safe_load(data)
    except yaml.YAMLError as exc:
        raise SuiteError(f"parsing config: {exc}") from exc
    try:
        suite = BenchmarkSuite.from_dict(document)
    except (ValueError, TypeError) as exc:
        raise SuiteError(f"parsing config: {exc}") from exc
    _apply_defaults(suite)
    validate(suite)
    return suite


def _quote(text: str) -> str:
    return json.dumps(text, ensure_ascii=False)


def validate(suite: BenchmarkSuite) -> None:
    """Check a suite for errors, raising SuiteError on the first found."""
    if not suite.name:
        raise SuiteError("validation: suite name is required")
    if not suite.models:
        raise SuiteError("validation: at least one model is required")
    for index, model in enumerate(suite.models):
        if not model.ref:
            raise SuiteError(
                f"validation: model[{index}] ({_quote(model.name)}) requires a ref"
            )
        if not model.quants:
            raise SuiteError(
                f"validation: model[{index}] ({_quote(model.name)}) "
                "requires at least one quant"
            )
    if not suite.scenarios:
        raise SuiteError("validation: at least one scenario is required")
    for index, scenario in enumerate(suite.scenarios):
        if not scenario.name:
            raise SuiteError(f"validation: scenario[{index}] requires a name")
        _validate_prompt_set(scenario.prompts, index)
    if suite.settings.dirty_mode not in _VALID_DIRTY_MODES:
        raise SuiteError(
            f"validation: invalid dirty_mode {_quote(suite.settings.dirty_mode)} "
            "(valid: abort, warn, force)"
        )


def _validate_prompt_set(prompts: PromptSet, index: int) -> None:
    sources = sum(bool(s) for s in (prompts.builtin, prompts.file, prompts.inline))
    if sources == 0:
        raise SuiteError(
            f"validation: scenario[{index}] requires a prompt source "
            "(builtin, file, or inline)"
        )
    if sources > 1:
        raise SuiteError(
            f"validation: scenario[{index}] must specify exactly one prompt source"
        )


def _apply_defaults(suite: BenchmarkSuite) -> None:
    defaults = suite.defaults
    defaults.warmup_prompts = defaults.warmup_prompts or 3
    defaults.measure_prompts = defaults.measure_prompts or 10
    defaults.max_tokens = defaults.max_tokens or 512
    defaults.cooldown_seconds = defaults.cooldown_seconds or 10
    if not defaults.timeout:
        defaults.timeout = timedelta(minutes=5)

    settings = suite.settings
    settings.dirty_mode = settings.dirty_mode or "abort"
    settings.metrics_sample_ms = settings.metrics_sample_ms or 500
    if not settings.server_startup_timeout:
        settings.server_startup_timeout = timedelta(minutes=2)
    if not settings.output_formats:
        settings.output_formats = ["json", "terminal"]
    settings.cooldown_between = settings.cooldown_between or 10

    for model in suite.models:
        model.alias = model.alias or model.name

    for scenario in suite.scenarios:
        scenario.context_sizes = scenario.context_sizes or [4096]
        scenario.batch_sizes = scenario.batch_sizes or [512]
        scenario.parallel_slots = scenario.parallel_slots or [1]
        scenario.max_tokens = scenario.max_tokens or defaults.max_tokens
        scenario.repeat = scenario.repeat or 1