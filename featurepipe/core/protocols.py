"""Protocol definitions for featurepipe collaborators.

Stage handlers and delegated tasks are opaque external collaborators; the
orchestrator only depends on the structural contracts below. Presentation is
decoupled through PipelineEventSink so orchestration logic never prints.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Sequence
    from pathlib import Path
    from typing import Self

    from featurepipe.core.models import (
        Artifact,
        HandlerOutput,
        PipelineRun,
        StageResult,
        TaskOutput,
        TaskRequest,
    )
    from featurepipe.domain.stages import Stage
    from featurepipe.infra.command_runner import CommandResult


@runtime_checkable
class StageHandler(Protocol):
    """Direct, synchronous-from-the-orchestrator analytical handler."""

    async def handle(self, inputs: Sequence[Artifact]) -> HandlerOutput:
        """Analyze the input artifacts and report findings.

        Args:
            inputs: Resolved input artifacts in the stage's declared order.

        Returns:
            HandlerOutput with findings, output drafts and halt suggestion.
        """
        ...


@runtime_checkable
class DelegatedTask(Protocol):
    """Opaque bounded unit of work invoked through the Agent Invocation Gateway."""

    async def perform(self, request: TaskRequest) -> TaskOutput:
        """Run one invocation of the task.

        Raising any exception is treated as an invocation failure.
        """
        ...


class CommandRunnerPort(Protocol):
    """Subset of CommandRunner the gateway needs to evaluate success."""

    def run(
        self,
        cmd: list[str] | str,
        env: dict[str, str] | None = None,
        timeout: float | None = None,
        shell: bool = False,
    ) -> CommandResult: ...


@runtime_checkable
class PipelineEventSink(Protocol):
    """Receives semantic events from the orchestrator and executor.

    All methods are synchronous and should be non-blocking.
    """

    def on_run_started(self, run: PipelineRun, stage_count: int) -> None:
        """Called once the run has been created."""
        ...

    def on_stage_started(self, stage: Stage, run: PipelineRun) -> None:
        """Called before a stage's handler is invoked."""
        ...

    def on_stage_completed(self, stage: Stage, result: StageResult) -> None:
        """Called after the StageResult has been appended to the history."""
        ...

    def on_artifact_written(self, artifact: Artifact) -> None:
        """Called when the Artifact Store persists an artifact."""
        ...

    def on_iteration(
        self,
        stage_id: str,
        iteration: int,
        max_iterations: int,
        tests_passed: bool,
        consistency_passed: bool | None,
    ) -> None:
        """Called after each bounded-loop iteration's checks."""
        ...

    def on_anomaly(self, stage_id: str, message: str) -> None:
        """Called when a delegation reports an anomaly."""
        ...

    def on_run_halted(self, run: PipelineRun, reason: str) -> None:
        """Called when the run transitions to stopped_at_stage_N."""
        ...

    def on_run_completed(self, run: PipelineRun) -> None:
        """Called when the final stage passes."""
        ...


class SDKClientProtocol(Protocol):
    """Subset of ClaudeSDKClient used by the agent-backed collaborators."""

    async def __aenter__(self) -> Self: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None: ...

    async def query(self, prompt: str, session_id: str = "default") -> None: ...

    def receive_response(self) -> AsyncIterator[object]: ...


class SDKClientFactoryProtocol(Protocol):
    """Creates SDK options and clients so tests can inject fakes."""

    def create_options(
        self,
        *,
        cwd: Path,
        model: str,
        permission_mode: str = "bypassPermissions",
        allowed_tools: list[str] | None = None,
        disallowed_tools: list[str] | None = None,
    ) -> object: ...

    def create(self, options: object) -> SDKClientProtocol: ...
