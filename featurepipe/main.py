#!/usr/bin/env python3
"""
featurepipe: sequential feature pipeline orchestrator.

This module is a thin shim that exposes the CLI app from featurepipe.cli.

Usage:
    featurepipe run [OPTIONS] SPEC_PATH
    featurepipe stages
"""

from featurepipe.cli.cli import bootstrap

# The console entrypoint (featurepipe.main:app) loads the user env before
# Typer parses any options
bootstrap()

from featurepipe.cli.cli import app  # noqa: E402

if __name__ == "__main__":
    app()
