"""Parsing and formatting of duration strings such as "5m", "30s" or "2m30s"."""

from __future__ import annotations

import re
from datetime import timedelta

_NANOSECOND = 1
_MICROSECOND = 1_000 * _NANOSECOND
_MILLISECOND = 1_000 * _MICROSECOND
_SECOND = 1_000 * _MILLISECOND
_MINUTE = 60 * _SECOND
_HOUR = 60 * _MINUTE

_MAX_NANOS = 2**63 - 1

_UNITS = {
    "ns": _NANOSECOND,
    "us": _MICROSECOND,
    "\u00b5s": _MICROSECOND,
    "\u03bcs": _MICROSECOND,
    "ms": _MILLISECOND,
    "s": _SECOND,
    "m": _MINUTE,
    "h": _HOUR,
}

_COMPONENT = re.compile(r"(\d*)(?:\.(\d*))?([^\d.]*)")


def _invalid(text: str) -> ValueError:
    return ValueError(f"invalid duration {text!r}")


def parse_duration(text: str) -> timedelta:
    """Parse a duration string like "1h", "2m30s", "1.5s" or "500ms".

    Raises ValueError if the value is not a string or is not a valid duration.
    """
    if not isinstance(text, str):
        raise ValueError(f'duration must be a string (e.g. "5m", "30s"), got {text!r}')

    rest = text
    sign = 1
    if rest and rest[0] in "+-":
        if rest[0] == "-":
            sign = -1
        rest = rest[1:]

    if rest == "0":
        return timedelta(0)
    if not rest:
        raise _invalid(text)

    total = 0
    pos = 0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        whole, frac, unit = match.groups()
        if not whole and not frac:
            raise _invalid(text)
        if not unit:
            raise ValueError(f"missing unit in duration {text!r}")
        scale = _UNITS.get(unit)
        if scale is None:
            raise ValueError(f"unknown unit {unit!r} in duration {text!r}")
        total += int(whole or "0") * scale
        if frac:
            total += int(frac) * scale // 10 ** len(frac)
        if total > _MAX_NANOS:
            raise _invalid(text)
        pos = match.end()

    micros = total // 1_000
    return timedelta(microseconds=sign * micros)


def _to_nanos(value: timedelta) -> int:
    return (value.days * 86_400 + value.seconds) * _SECOND + value.microseconds * _MICROSECOND


def _with_fraction(value: int, precision: int) -> str:
    whole, frac = divmod(value, 10**precision)
    if not frac:
        return str(whole)
    digits = str(frac).rjust(precision, "0").rstrip("0")
    return f"{whole}.{digits}"


def format_duration(value: timedelta) -> str:
    """Format a timedelta the way durations are written: "5m0s", "1.5s", "500ms"."""
    nanos = _to_nanos(value)
    if nanos == 0:
        return "0s"

    sign = "-" if nanos < 0 else ""
    magnitude = abs(nanos)

    if magnitude < _SECOND:
        if magnitude < _MICROSECOND:
            body = f"{magnitude}ns"
        elif magnitude < _MILLISECOND:
            body = _with_fraction(magnitude, 3) + "\u00b5s"
        else:
            body = _with_fraction(magnitude, 6) + "ms"
        return sign + body

    body = _with_fraction(magnitude % _MINUTE, 9) + "s"
    total_minutes = magnitude // _MINUTE
    if total_minutes:
        hours, minutes = divmod(total_minutes, 60)
        body = f"{minutes}m{body}"
        if hours:
            body = f"{hours}h{body}"
    return sign + body