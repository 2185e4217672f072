"""Run configuration, orchestration and metrics."""
