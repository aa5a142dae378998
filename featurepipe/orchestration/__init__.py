"""Orchestration layer: the run driver, its factory and the summary reporter."""
