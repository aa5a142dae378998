"""Domain layer package.

This package contains the pipeline's pure policy:
- stages: Stage definitions and the reference pipeline
- stop_conditions: Per-stage halt predicates
- lifecycle: Run state machine
- settings / config_loader: featurepipe.yaml settings
"""
