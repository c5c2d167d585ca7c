"""Streaming probe requests against a chat-completion endpoint, and warmup."""

from __future__ import annotations

import json
import threading
import time
from dataclasses import dataclass
from typing import Any, Sequence

import requests

from sparkbench.job.types import Cancelled
from sparkbench.metrics.stats import RawSample, Timings

_DATA_PREFIX = "data: "


class ProbeError(Exception):
    """Raised when a probe request fails."""


@dataclass
class ProbeResult:
    """Measurements from a single prompt request."""

    sample: RawSample
    timings: Timings | None = None


def _elapsed_ms(start: float) -> float:
    micros = int((time.perf_counter() - start) * 1_000_000)
    return micros / 1000.0


def probe_request(
    endpoint: str, prompt: str, max_tokens: int, temperature: float
) -> ProbeResult:
    """Send a streaming chat request, timing the first token and the whole response.

    Timings are taken from the last data chunk of the stream.
    Raises ProbeError if the request fails or the server does not answer 200.
    """
    payload = {
        "model": "default",
        "messages": [{"role": "user", "content": prompt}],
        "max_tokens": max_tokens,
        "temperature": temperature,
        "stream": True,
    }

    start = time.perf_counter()
    try:
        response = requests.post(
            endpoint + "/v1/chat/completions", json=payload, stream=True
        )
    except requests.RequestException as exc:
        raise ProbeError(f"sending request: {exc}") from exc

    with response:
        if response.status_code != 200:
            raise ProbeError(f"HTTP {response.status_code}")

        ttft_ms = 0.0
        seen_first = False
        last_data: str | None = None
        try:
            for raw in response.iter_lines():
                line = raw.decode("utf-8", errors="replace")
                if not line.startswith(_DATA_PREFIX):
                    continue
                data = line[len(_DATA_PREFIX):]
                if data == "[DONE]":
                    break
                if not seen_first:
                    ttft_ms = _elapsed_ms(start)
                    seen_first = True
                last_data = data
        except requests.RequestException as exc:
            raise ProbeError(f"reading stream: {exc}") from exc

        end_to_end_ms = _elapsed_ms(start)

    sample = RawSample(
        ttft_ms=ttft_ms,
        end_to_end_ms=end_to_end_ms,
        prompt_bytes=len(prompt.encode("utf-8")),
    )

    timings = extract_timings_from_sse(last_data) if last_data is not None else None
    if timings is not None:
        sample.prompt_tokens = timings.prompt_n
        sample.predicted_tokens = timings.predicted_n
        sample.prompt_ms = timings.prompt_ms
        sample.predicted_ms = timings.predicted_ms

    return ProbeResult(sample=sample, timings=timings)


def extract_timings_from_sse(data: bytes | str) -> Timings | None:
    """Extract timings from a streamed data chunk.

    Falls back to token counts from "usage" when no timings are present;
    returns None if neither is usable.
    """
    try:
        envelope: Any = json.loads(data)
        if not isinstance(envelope, dict):
            return None
        timings = envelope.get("timings")
        if isinstance(timings, dict):
            return Timings.from_dict(timings)
        usage = envelope.get("usage")
        if isinstance(usage, dict):
            completion = int(usage.get("completion_tokens") or 0)
            if completion > 0:
                return Timings(
                    prompt_n=int(usage.get("prompt_tokens") or 0),
                    predicted_n=completion,
                )
    except (ValueError, TypeError):
        return None
    return None


def send_warmup_prompts(
    endpoint: str,
    prompts: Sequence[str],
    count: int,
    max_tokens: int,
    temperature: float,
    cancel: threading.Event | None = None,
) -> None:
    """Send up to `count` warmup prompts and discard the results.

    Raises Cancelled if the cancel event is set, ProbeError if a prompt fails.
    """
    for index, prompt in enumerate(prompts[: max(count, 0)], start=1):
        if cancel is not None and cancel.is_set():
            raise Cancelled("warmup cancelled")
        try:
            probe_request(endpoint, prompt, max_tokens, temperature)
        except ProbeError as exc:
            raise ProbeError(f"warmup prompt {index}: {exc}") from exc