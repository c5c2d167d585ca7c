"""Prompt loading from text or YAML files, and prompt sizing."""

from __future__ import annotations

from dataclasses import dataclass

import requests
import yaml

_SEPARATOR = "\n---\n"


class PromptFileError(Exception):
    """Raised when a prompt file cannot be read or holds no prompts."""


class TokenizeError(Exception):
    """Raised when the tokenize endpoint cannot be used."""


@dataclass
class TokenizeResult:
    """Token count of a prompt and how it was obtained ("tokenized" or "estimated")."""

    token_count: int
    source: str


def split_prompts(text: str) -> list[str]:
    """Split text on lines of "---", dropping blank prompts."""
    return [part.strip() for part in text.split(_SEPARATOR) if part.strip()]


def load_file(path: str) -> list[str]:
    """Load prompts from a file.

    Files ending in .yaml or .yml hold a "prompts" list of entries with "text";
    other files hold prompts separated by "---" lines.
    """
    path = str(path)
    try:
        with open(path, encoding="utf-8") as handle:
            content = handle.read()
    except OSError as exc:
        raise PromptFileError(f"reading prompt file: {exc}") from exc

    if path.endswith((".yaml", ".yml")):
        return _parse_yaml_prompts(content)

    prompts = split_prompts(content)
    if not prompts:
        raise PromptFileError(f"prompt file {path!r} contains no prompts")
    return prompts


def _parse_yaml_prompts(content: str) -> list[str]:
    try:
        document = yaml.safe_load(content)
    except yaml.YAMLError as exc:
        raise PromptFileError(f"parsing YAML prompts: {exc}") from exc

    if document is None:
        document = {}
    if not isinstance(document, dict):
        raise PromptFileError("parsing YAML prompts: expected a mapping")

    entries = document.get("prompts") or []
    if not isinstance(entries, list):
        raise PromptFileError("parsing YAML prompts: prompts must be a list")
    if not entries:
        raise PromptFileError("YAML prompt file contains no prompts")

    prompts = []
    for entry in entries:
        if not isinstance(entry, dict):
            raise PromptFileError("parsing YAML prompts: each prompt must be a mapping")
        text = entry.get("text")
        prompts.append("" if text is None else str(text).strip())
    return prompts


def tokenize(endpoint: str, prompt: str) -> TokenizeResult:
    """Count a prompt's tokens exactly with the server's /tokenize endpoint."""
    try:
        response = requests.post(endpoint + "/tokenize", json={"content": prompt})
    except requests.RequestException as exc:
        raise TokenizeError(f"tokenize request: {exc}") from exc

    with response:
        if response.status_code != 200:
            raise TokenizeError(f"tokenize: HTTP {response.status_code}")
        try:
            body = response.json()
            tokens = body.get("tokens") or []
            count = len(tokens)
        except (ValueError, AttributeError, TypeError) as exc:
            raise TokenizeError(f"tokenize: decoding response: {exc}") from exc

    return TokenizeResult(token_count=count, source="tokenized")


def estimate_tokens(prompt: str) -> TokenizeResult:
    """Estimate the token count at about four bytes per token, at least one."""
    estimated = (len(prompt.encode("utf-8")) + 3) // 4
    return TokenizeResult(token_count=max(estimated, 1), source="estimated")