"""Throughput statistics, sample collection and system sampling."""