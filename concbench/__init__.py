"""concbench: compare concurrency strategies on identical workloads.

- strategies: the execution engine (sequential, threads, fibers, actors) and
  the capability registry that decides which of them this host can run
- harness: configuration, workloads, timing runner, reports and persistence
"""

__version__ = "0.1.0"
