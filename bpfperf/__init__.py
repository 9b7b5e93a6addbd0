# Author : Eshan Roy <eshanized@proton.me>
# SPDX-License-Identifier: MIT

"""
bpfperf: per-core latency benchmarking for compiled eBPF programs.

A YAML test matrix says which program runs on which CPU. For every test the
runner loads the module once, fans out one timed bpf_prog_test_run per
assigned CPU in parallel, and prints a CSV row with the per-CPU and average
durations.

Subsystems:
  - config: YAML loading and schema validation
  - matrix: test interpretation and CPU assignment
  - bpf: backend protocols, libbpf binding, module cache
  - execution: map state preparation and the parallel test runs
  - reporting: CSV output
  - hooks: pre/post test commands
  - runner: the outer test loop
"""

__version__ = "0.1.0"
