#!/usr/bin/env python3
# ruff: noqa: E402
"""
featurepipe CLI: drive a feature specification through the stage pipeline.

Usage:
    featurepipe run [OPTIONS] SPEC_PATH
    featurepipe stages

Exit codes:
    0   run completed
    1   run halted at a stage
    2   contract violation or configuration error
    130 interrupted
"""

from __future__ import annotations

from featurepipe.infra.env import load_user_env

# Bootstrap state: tracks whether bootstrap() has been called
_bootstrapped = False


def bootstrap() -> None:
    """Initialize environment.

    Must be called before any command runs. Idempotent.

    Side effects:
        - Loads environment variables from ~/.config/featurepipe/.env
    """
    global _bootstrapped

    if _bootstrapped:
        return

    load_user_env()
    _bootstrapped = True


import asyncio
from pathlib import Path
from typing import Annotated, Never

import typer
from tabulate import tabulate

from featurepipe.config import ConfigurationError, PipelineConfig
from featurepipe.core.errors import ContractViolation, SpecificationNotFound
from featurepipe.domain.config_loader import load_settings
from featurepipe.domain.settings import ConfigError
from featurepipe.domain.stages import REFERENCE_STAGES
from featurepipe.infra.io.console import Colors, log, set_verbose
from featurepipe.infra.io.console_sink import ConsoleEventSink
from featurepipe.orchestration.factory import PipelineDependencies, create_orchestrator

EXIT_COMPLETED = 0
EXIT_HALTED = 1
EXIT_CONTRACT = 2
EXIT_INTERRUPTED = 130

app = typer.Typer(
    name="featurepipe",
    help="Sequential feature pipeline driven by Claude Agent SDK stages",
    add_completion=False,
)


@app.command()
def run(
    spec_path: Annotated[
        Path,
        typer.Argument(
            help="Initiating specification, e.g. docs/todo/FEAT47_specification.md",
        ),
    ],
    force: Annotated[
        bool,
        typer.Option(
            "--force",
            help="Overwrite artifacts left by a previous run of the same feature",
        ),
    ] = False,
    verbose: Annotated[
        bool,
        typer.Option(
            "--verbose",
            "-v",
            help="Show findings and artifact writes as they happen",
        ),
    ] = False,
) -> Never:
    """Run every stage for one specification and print the summary."""
    set_verbose(verbose)
    repo_path = Path.cwd()

    try:
        config = PipelineConfig.from_env()
        settings = load_settings(repo_path)
    except (ConfigurationError, ConfigError) as e:
        log("✗", str(e), Colors.RED)
        raise typer.Exit(EXIT_CONTRACT) from e

    orchestrator = create_orchestrator(
        repo_path,
        settings=settings,
        config=config,
        deps=PipelineDependencies(event_sink=ConsoleEventSink()),
        allow_overwrite=force,
    )

    exit_code: int | None = None
    try:
        asyncio.run(orchestrator.run(spec_path.resolve()))
    except SpecificationNotFound as e:
        log("✗", str(e), Colors.RED)
        raise typer.Exit(EXIT_CONTRACT) from e
    except ContractViolation as e:
        log("✗", f"Contract violation: {e}", Colors.RED)
        exit_code = EXIT_CONTRACT
    except KeyboardInterrupt:
        log("○", "Interrupted", Colors.YELLOW)
        exit_code = EXIT_INTERRUPTED

    if orchestrator.pipeline_run is None:
        raise typer.Exit(exit_code or EXIT_INTERRUPTED)

    summary = orchestrator.summary()
    typer.echo("")
    typer.echo(orchestrator.reporter.render(summary))

    if exit_code is not None:
        raise typer.Exit(exit_code)
    raise typer.Exit(EXIT_COMPLETED if summary.completed else EXIT_HALTED)


@app.command()
def stages() -> None:
    """Print the reference pipeline definition."""
    rows = [
        [
            stage.ordinal,
            stage.id,
            stage.name,
            stage.mode.value,
            ", ".join(kind.value for kind in stage.inputs),
            ", ".join(kind.value for kind in stage.outputs) or "-",
            stage.stop_condition.value,
        ]
        for stage in REFERENCE_STAGES
    ]
    typer.echo(
        tabulate(
            rows,
            headers=["#", "Id", "Name", "Mode", "Inputs", "Outputs", "Halts on"],
            tablefmt="simple",
        )
    )
