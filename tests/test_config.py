import os

from sparkbench.config import dirs

_BENCH_VARS = ["LLM_BENCH_HOME", "LLM_BENCH_CONFIG_DIR", "LLM_BENCH_DATA_DIR", "LLM_BENCH_CACHE_DIR"]
_XDG_VARS = ["XDG_CONFIG_HOME", "XDG_DATA_HOME", "XDG_CACHE_HOME"]


def test_xdg_defaults(monkeypatch, tmp_path):
    for name in _BENCH_VARS + _XDG_VARS:
        monkeypatch.setenv(name, "")
    monkeypatch.setenv("HOME", str(tmp_path))

    d = dirs()
    home = os.path.expanduser("~")
    assert d.config == os.path.join(home, ".config", "llm-bench")
    assert d.data.endswith(os.path.join(".local", "share", "llm-bench"))
    assert d.cache.endswith(os.path.join(".cache", "llm-bench"))
    assert d.data == os.path.join(str(tmp_path), ".local", "share", "llm-bench")


def test_home_override(monkeypatch):
    monkeypatch.setenv("LLM_BENCH_HOME", "/tmp/bench-home")
    for name in _BENCH_VARS[1:]:
        monkeypatch.setenv(name, "")

    d = dirs()
    assert d.config == "/tmp/bench-home/config"
    assert d.data == "/tmp/bench-home/data"
    assert d.cache == "/tmp/bench-home/cache"


def test_individual_overrides(monkeypatch):
    monkeypatch.setenv("LLM_BENCH_HOME", "/tmp/bench-home")
    monkeypatch.setenv("LLM_BENCH_CONFIG_DIR", "/custom/config")
    monkeypatch.setenv("LLM_BENCH_DATA_DIR", "/custom/data")
    monkeypatch.setenv("LLM_BENCH_CACHE_DIR", "/custom/cache")

    d = dirs()
    assert d.config == "/custom/config"
    assert d.data == "/custom/data"
    assert d.cache == "/custom/cache"


def test_xdg_overrides(monkeypatch):
    for name in _BENCH_VARS:
        monkeypatch.setenv(name, "")
    monkeypatch.setenv("XDG_CONFIG_HOME", "/xdg/config")
    monkeypatch.setenv("XDG_DATA_HOME", "/xdg/data")
    monkeypatch.setenv("XDG_CACHE_HOME", "/xdg/cache")

    d = dirs()
    assert d.config == "/xdg/config/llm-bench"
    assert d.data == "/xdg/data/llm-bench"
    assert d.cache == "/xdg/cache/llm-bench"


def test_partial_override_keeps_home_for_others(monkeypatch):
    monkeypatch.setenv("LLM_BENCH_HOME", "/tmp/bench-home")
    monkeypatch.setenv("LLM_BENCH_CONFIG_DIR", "")
    monkeypatch.setenv("LLM_BENCH_DATA_DIR", "/custom/data")
    monkeypatch.setenv("LLM_BENCH_CACHE_DIR", "")

    d = dirs()
    assert d.config == "/tmp/bench-home/config"
    assert d.data == "/custom/data"
    assert d.cache == "/tmp/bench-home/cache"