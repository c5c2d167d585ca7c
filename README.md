# sparkbench

sparkbench is a Python library for measuring how quickly a local LLM
inference server answers chat-completion requests, and for keeping and
reporting the results.

It provides:

- **Suites** (`sparkbench.suite`): a YAML file describes models,
  quantizations and scenarios; it is validated, defaults are filled in, and
  it is expanded into an ordered list of jobs.
- **Probing** (`sparkbench.job.probe`): streaming chat-completion requests
  that measure time to first token, end-to-end latency and the timings the
  server reports itself; plus warmup prompts.
- **Metrics** (`sparkbench.metrics`): aggregation of samples into mean,
  median, p5, p95, sample standard deviation, min and max, and a background
  sampler of memory and GPU use.
- **Pre-flight checks** (`sparkbench.syscheck`): idle CPU/GPU, GPU
  temperature, free memory, free disk and whether `llama-server` is on the
  `PATH`, governed by a dirty mode (`abort`, `warn`, `force`).
- **Storage** (`sparkbench.store`): one directory per run with
  `results.json`, `summary.json`, `system.json` and one file per job; runs
  can be listed, filtered and loaded again.
- **Reports** (`sparkbench.report`): terminal reports, compact or indented
  JSON, CSV, and cross-run comparison tables.
- **Model registry** (`sparkbench.registry`): a JSON manifest of
  downloaded model files, their on-disk layout, and clean-up of partial and
  untracked files.

## Defining a suite

```yaml
name: "Model comparison"
defaults:
  warmup_prompts: 3
  measure_prompts: 10
  timeout: 5m
models:
  - name: "Qwen2.5-Coder-32B"
    ref: "owner/Qwen2.5-Coder-32B-Instruct-GGUF"
    quants: ["Q4_K_M", "Q8_0"]
    alias: "qwen-32b"
scenarios:
  - name: "throughput"
    prompts:
      file: "prompts.txt"
    repeat: 3
  - name: "context-scaling"
    context_sizes: [4096, 8192, 16384]
    prompts:
      inline: ["Summarise the CAP theorem."]
settings:
  dirty_mode: warn
```

`parse_suite` and `load_suite` fill in omitted values: 3 warmup and 10
measured prompts, 512 max tokens, a 10 second cooldown, a 5 minute job
timeout, a 4096 context, batch size 512, one parallel slot and one repeat
per scenario; a model's alias defaults to its name. Each scenario must have
exactly one prompt source (`builtin`, `file` or `inline`). Durations are
written as `5m`, `30s`, `2m30s`, `500ms`. Problems raise `SuiteError`.

## Expanding and filtering jobs

```python
from sparkbench.suite.config import load_suite
from sparkbench.suite.scheduler import expand_jobs, filter_jobs, scenario_id

suite = load_suite("suite.yaml")
jobs = expand_jobs(suite)                     # model -> quant -> scenario -> combos -> repeats
only_q8 = filter_jobs(jobs, ["Q8_0"])         # substring match on job IDs
for spec in only_q8:
    print(spec.job_id, scenario_id(spec.scenario))
```

Job IDs look like `qwen-32b-Q4_K_M-throughput-1`; scenarios with more than
one context/batch/parallel value get extended IDs such as
`qwen-32b-Q4_K_M-context-scaling-ctx8192-b512-p1-1`. Scenario IDs are a
12-character content hash, stable across runs.

## Probing a server

```python
from sparkbench.job.probe import probe_request, send_warmup_prompts

send_warmup_prompts("http://localhost:8080", ["Hello"], 1, 64, 0.0)
result = probe_request("http://localhost:8080", "Explain TCP.", 256, 0.0)
print(result.sample.ttft_ms, result.sample.end_to_end_ms, result.timings)
```

Requests go to `<endpoint>/v1/chat/completions`; a failure raises
`ProbeError`. `sparkbench.job.types.cooldown(seconds, cancel)` pauses
between jobs and raises `Cancelled` if the given `threading.Event` is set.

## Aggregating measurements

```python
from sparkbench.metrics.stats import Collector, RawSample, aggregate

stats = aggregate([1, 2, 3, 4, 5, 6, 7, 8, 9, 10])
print(stats.mean, stats.median, stats.p95, stats.samples)

collector = Collector()
collector.add(RawSample(prompt_tokens=42, predicted_tokens=100,
                        prompt_ms=20.0, predicted_ms=2000.0,
                        ttft_ms=50.0, end_to_end_ms=2020.0))
results = collector.collect()
print(results.generation.median)   # tokens per second
```

`sparkbench.metrics.system.SystemSampler` samples memory (Linux) and GPU
figures (via `nvidia-smi`) on a background thread; use it as a context
manager or call `start()` and `stop()`. Fewer than three samples give
metrics marked as not available.

## Prompts

```python
from sparkbench.prompts import load_file, estimate_tokens, tokenize

prompts = load_file("prompts.txt")   # prompts separated by a line holding only ---
print(len(prompts), estimate_tokens(prompts[0]).token_count)
```

Files ending in `.yaml` or `.yml` are read as a `prompts:` list of entries
with a `text` field. `tokenize(endpoint, prompt)` asks the server's
`/tokenize` endpoint for an exact count.

## Stored results and reports

```python
from sparkbench.config import dirs
from sparkbench.store import Store, StoreFilter
from sparkbench.report.terminal import terminal, compare
from sparkbench.report.export import to_csv

store = Store(dirs().data + "/results")
runs = [store.load(summary.run_id) for summary in store.list(StoreFilter())]
for run in runs:
    print(terminal(run))
    print(to_csv(run))
print(compare(runs, "generation"))
```

`compare(results, metric)` renders a model × quantization table of
medians for `generation`, `prompt_eval`, `ttft` or `e2e`. `to_json` and
`to_json_pretty` return JSON text. Colour is used only when standard output
is a terminal and `NO_COLOR` is not set.

## Directories

`sparkbench.config.dirs()` resolves config, data and cache directories
from, in order of priority:

1. `LLM_BENCH_CONFIG_DIR`, `LLM_BENCH_DATA_DIR`, `LLM_BENCH_CACHE_DIR`
2. `LLM_BENCH_HOME` (its `config`, `data` and `cache` subdirectories)
3. `XDG_CONFIG_HOME`, `XDG_DATA_HOME`, `XDG_CACHE_HOME`, or `~/.config`,
   `~/.local/share` and `~/.cache`, each with an `llm-bench` subdirectory

## Model registry

```python
from sparkbench.registry.manifest import Registry

registry = Registry("/data/models-home")
registry.load()
for model in registry.list():
    print(model.id, [f.filename for f in model.files])
freed = registry.gc()   # drops .partial/.state files and untracked files
```

`sparkbench.registry.storage.StorageLayout` gives the paths for model
directories, files, partial downloads, state sidecars and the manifest.

## Pre-flight checks

`sparkbench.syscheck.preflight.parse_dirty_mode` turns `abort`, `warn` or
`force` (or an empty string, meaning `abort`) into a `DirtyMode`, and
`run_preflight(mode, result_dir)` runs the idle, thermal and resource
checks. In `abort` mode a failed check fails the pre-flight; in `warn`
mode failures become warnings; `force` skips the checks entirely.

## What is not included

sparkbench is a library of building blocks. It has no command-line
program, and nothing in it launches an inference server, runs a whole suite
of jobs from start to finish, or downloads models: the registry only
records and tidies files that are already on disk. It also ships no
built-in prompt sets, so a suite's `builtin` prompt source is accepted by
validation but not resolved to prompts by the package.