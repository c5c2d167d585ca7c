"""Running the pre-flight checks according to the dirty mode."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Iterable

from sparkbench.syscheck.checks import CheckResult, IdleCheck, ResourceCheck, ThermalCheck


class DirtyMode(str, Enum):
    """How pre-flight check failures are handled."""

    ABORT = "abort"
    WARN = "warn"
    FORCE = "force"


@dataclass
class PreflightResult:
    """Results of all pre-flight checks."""

    passed: bool
    results: list[CheckResult] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


def parse_dirty_mode(text: str) -> DirtyMode:
    """Parse a dirty mode; the empty string means abort. Raises ValueError otherwise."""
    if text == "":
        return DirtyMode.ABORT
    try:
        return DirtyMode(text)
    except ValueError:
        raise ValueError(
            f"invalid dirty_mode: {text!r} (valid: abort, warn, force)"
        ) from None


def _run_checks(
    mode: DirtyMode,
    checks: Iterable[Callable[[threading.Event | None], CheckResult]],
    cancel: threading.Event | None,
) -> PreflightResult:
    results = []
    warnings = []
    passed = True
    for check in checks:
        outcome = check(cancel)
        results.append(replace(outcome))
        if outcome.warning:
            warnings.append(outcome.warning)
        if outcome.failed:
            if mode == DirtyMode.ABORT:
                passed = False
            else:
                warnings.append(outcome.message)
    return PreflightResult(passed=passed, results=results, warnings=warnings)


def run_preflight(
    mode: DirtyMode,
    result_dir: str = "",
    cancel: threading.Event | None = None,
) -> PreflightResult:
    """Run the idle, thermal and resource checks; force mode skips them all."""
    if mode == DirtyMode.FORCE:
        return PreflightResult(
            passed=True,
            warnings=["Pre-flight checks skipped (dirty_mode: force)"],
        )

    def resources(cancel_event: threading.Event | None) -> CheckResult:
        return ResourceCheck(result_dir=result_dir or "").run(cancel_event)

    checks = [IdleCheck().run, ThermalCheck().run, resources]
    return _run_checks(DirtyMode(mode), checks, cancel)