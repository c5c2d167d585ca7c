"""Benchmark suite definitions, validation and job expansion."""