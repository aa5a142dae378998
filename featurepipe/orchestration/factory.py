"""Factory for PipelineOrchestrator initialization.

Design principles:
- PipelineConfig: environment-level configuration (runs dir, model)
- ProjectSettings: per-repository settings from featurepipe.yaml
- PipelineDependencies: protocol implementations (DI for testability)
- create_orchestrator(): wires the defaults for anything not injected

Usage:
    # Defaults: agent-backed handlers, real command runner
    orchestrator = create_orchestrator(Path("."))

    # With fakes for testing
    deps = PipelineDependencies(handlers=fake_handlers, tasks=fake_tasks,
                                command_runner=FakeCommandRunner())
    orchestrator = create_orchestrator(tmp_path, deps=deps)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from featurepipe.config import PipelineConfig
from featurepipe.domain.settings import ProjectSettings
from featurepipe.domain.stages import REFERENCE_STAGES, HandlerMode
from featurepipe.domain.stop_conditions import StopConditionEvaluator
from featurepipe.infra.clients.agent_sdk_handler import AgentSdkStageHandler
from featurepipe.infra.clients.agent_sdk_task import AgentSdkTask
from featurepipe.infra.clients.sdk_factory import SDKClientFactory
from featurepipe.infra.command_runner import CommandRunner
from featurepipe.infra.io.event_sink import NullEventSink
from featurepipe.orchestration.orchestrator import PipelineOrchestrator
from featurepipe.pipeline.agent_gateway import AgentInvocationGateway

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence
    from pathlib import Path

    from featurepipe.core.protocols import (
        CommandRunnerPort,
        DelegatedTask,
        PipelineEventSink,
        SDKClientFactoryProtocol,
        StageHandler,
    )
    from featurepipe.domain.stages import Stage

logger = logging.getLogger(__name__)


@dataclass
class PipelineDependencies:
    """Injectable collaborators; None means "use the default".

    Handlers and tasks are merged over the defaults by stage id, so a test can
    replace a single stage.
    """

    event_sink: PipelineEventSink | None = None
    handlers: Mapping[str, StageHandler] | None = None
    tasks: Mapping[str, DelegatedTask] | None = None
    command_runner: CommandRunnerPort | None = None
    sdk_client_factory: SDKClientFactoryProtocol | None = None


def create_orchestrator(
    repo_path: Path,
    *,
    settings: ProjectSettings | None = None,
    config: PipelineConfig | None = None,
    deps: PipelineDependencies | None = None,
    allow_overwrite: bool = False,
    stages: Sequence[Stage] = REFERENCE_STAGES,
) -> PipelineOrchestrator:
    """Create a PipelineOrchestrator for ``repo_path``.

    Precedence: FEATUREPIPE_MAX_ITERATIONS (config) over featurepipe.yaml for
    the iteration cap; featurepipe.yaml ``model`` over FEATUREPIPE_MODEL.
    """
    settings = settings or ProjectSettings()
    config = config or PipelineConfig()
    deps = deps or PipelineDependencies()

    max_iterations = config.max_iterations or settings.max_iterations
    model = settings.model or config.model
    event_sink = deps.event_sink or NullEventSink()

    handlers = dict(deps.handlers or {})
    tasks = dict(deps.tasks or {})
    missing = [
        stage
        for stage in stages
        if stage.id not in (tasks if stage.is_delegated else handlers)
    ]
    if missing:
        sdk_client_factory = deps.sdk_client_factory or SDKClientFactory(
            claude_config_dir=config.claude_config_dir
        )
        for stage in missing:
            if stage.mode is HandlerMode.DIRECT:
                handlers[stage.id] = AgentSdkStageHandler(
                    stage=stage,
                    repo_path=repo_path,
                    sdk_client_factory=sdk_client_factory,
                    model=model,
                    timeout=settings.agent_timeout,
                )
            else:
                tasks[stage.id] = AgentSdkTask(
                    stage=stage,
                    repo_path=repo_path,
                    sdk_client_factory=sdk_client_factory,
                    model=model,
                    timeout=settings.agent_timeout,
                )
        logger.debug("Agent-backed stages: %s", ", ".join(s.id for s in missing))

    command_runner = deps.command_runner or CommandRunner(
        cwd=repo_path, timeout_seconds=settings.command_timeout
    )
    gateway = AgentInvocationGateway(
        command_runner, event_sink=event_sink, command_timeout=settings.command_timeout
    )

    return PipelineOrchestrator(
        handlers=handlers,
        tasks=tasks,
        gateway=gateway,
        evaluator=StopConditionEvaluator(max_iterations=max_iterations),
        stages=stages,
        event_sink=event_sink,
        test_command=settings.test_command,
        check_command=settings.check_command,
        artifacts_dir=settings.artifacts_dir,
        allow_overwrite=allow_overwrite,
        runs_dir=config.runs_dir,
    )
