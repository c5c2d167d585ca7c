"""Benchmark job results, probe requests, warmup and cooldown."""