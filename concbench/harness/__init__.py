"""Benchmark harness around the strategy engine.

- config: immutable BenchmarkConfig, loaded from JSON / env / overrides
- workloads: the task bodies (empty, fibonacci, sumprimes, readwrite, readurl)
- runner: timed cross-product of iterations x workloads x strategies
- reporting: console tables, Markdown and JSON output
- persistence: SQLite result store
"""
