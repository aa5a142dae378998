"""PipelineOrchestrator: drives a feature through the ordered stages.

The orchestrator owns one PipelineRun at a time. Control flow per stage:

    Orchestrator -> StageExecutor -> (handler | gateway) -> ArtifactStore
                 -> StopConditionEvaluator -> next stage or halt

Progression and halting are decided by the pure PipelineLifecycle; this class
performs the I/O the lifecycle's effects ask for. A halted run is never
retried: the caller starts a new run after fixing the inputs.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from pathlib import Path
from typing import TYPE_CHECKING

from featurepipe.core.errors import ContractViolation, SpecificationNotFound
from featurepipe.core.models import PipelineRun, RunStatus
from featurepipe.domain.lifecycle import Effect, PipelineLifecycle
from featurepipe.domain.stages import REFERENCE_STAGES, validate_stages
from featurepipe.infra.artifact_store import (
    ArtifactManager,
    ArtifactStore,
    feature_name_from_spec,
)
from featurepipe.infra.io.debug_log import cleanup_debug_logging, configure_debug_logging
from featurepipe.infra.io.event_sink import NullEventSink
from featurepipe.orchestration.summary import SummaryReporter
from featurepipe.pipeline.stage_executor import CANCELLED_REASON, StageExecutor

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from featurepipe.core.models import Summary
    from featurepipe.core.protocols import (
        DelegatedTask,
        PipelineEventSink,
        StageHandler,
    )
    from featurepipe.domain.stages import Stage
    from featurepipe.domain.stop_conditions import StopConditionEvaluator
    from featurepipe.pipeline.agent_gateway import AgentInvocationGateway

logger = logging.getLogger(__name__)


class PipelineOrchestrator:
    """Sequential, halt-aware stage orchestrator.

    Usage:
        orchestrator = create_orchestrator(repo_path)
        summary = await orchestrator.run(Path("docs/todo/FEAT47_specification.md"))
        print(orchestrator.reporter.render(summary))
    """

    def __init__(
        self,
        *,
        handlers: Mapping[str, StageHandler],
        tasks: Mapping[str, DelegatedTask],
        gateway: AgentInvocationGateway,
        evaluator: StopConditionEvaluator,
        stages: Sequence[Stage] = REFERENCE_STAGES,
        event_sink: PipelineEventSink | None = None,
        test_command: str | None = None,
        check_command: str | None = None,
        artifacts_dir: Path | None = None,
        allow_overwrite: bool = False,
        runs_dir: Path | None = None,
        reporter: SummaryReporter | None = None,
    ) -> None:
        self.stages: tuple[Stage, ...] = tuple(stages)
        validate_stages(self.stages)
        self.handlers = handlers
        self.tasks = tasks
        self.gateway = gateway
        self.evaluator = evaluator
        self.event_sink: PipelineEventSink = event_sink or NullEventSink()
        self.test_command = test_command
        self.check_command = check_command
        self.artifacts_dir = artifacts_dir
        self.allow_overwrite = allow_overwrite
        self.runs_dir = runs_dir
        self.reporter = reporter or SummaryReporter()

        self._run: PipelineRun | None = None
        self._lifecycle: PipelineLifecycle | None = None
        self._executor: StageExecutor | None = None
        self._cancel_requested = False

    @property
    def pipeline_run(self) -> PipelineRun | None:
        """The active (or most recently finished) run."""
        return self._run

    def start(self, spec_path: Path) -> PipelineRun:
        """Create a PipelineRun for ``spec_path`` and enter Running(0).

        Raises:
            SpecificationNotFound: If ``spec_path`` is not an existing file.
            RuntimeError: If another run is still active.
        """
        if self._lifecycle is not None and not self._lifecycle.is_terminal:
            raise RuntimeError("A pipeline run is already active")

        spec_path = Path(spec_path)
        if not spec_path.is_file():
            raise SpecificationNotFound(spec_path)

        run_id = str(uuid.uuid4())
        feature = feature_name_from_spec(spec_path)
        artifacts_dir = self.artifacts_dir or spec_path.parent
        store = ArtifactStore(
            run_id,
            ArtifactManager(artifacts_dir, feature),
            allow_overwrite=self.allow_overwrite,
            on_written=self.event_sink.on_artifact_written,
        )
        store.register_specification(spec_path)

        self._executor = StageExecutor(
            store=store,
            handlers=self.handlers,
            tasks=self.tasks,
            gateway=self.gateway,
            evaluator=self.evaluator,
            event_sink=self.event_sink,
            test_command=self.test_command,
            check_command=self.check_command,
        )
        self._run = PipelineRun(run_id=run_id, spec_path=spec_path, feature=feature)
        self._lifecycle = PipelineLifecycle(len(self.stages))
        self._lifecycle.start()
        self._cancel_requested = False

        logger.info("Run %s started for %s", run_id, feature)
        self.event_sink.on_run_started(self._run, len(self.stages))
        return self._run

    async def advance(self) -> PipelineRun:
        """Execute stages until the run completes or halts.

        Raises:
            RuntimeError: If start() has not been called.
            ContractViolation: After marking the run stopped at the stage whose
                contract was violated.
            asyncio.CancelledError: After marking the run stopped at the stage
                that was interrupted.
        """
        if self._run is None or self._lifecycle is None or self._executor is None:
            raise RuntimeError("start() must be called before advance()")
        run = self._run
        lifecycle = self._lifecycle

        while not lifecycle.is_terminal:
            stage = self.stages[lifecycle.index]
            run.current_index = lifecycle.index

            if self._cancel_requested:
                transition = lifecycle.on_cancelled()
                self._mark_stopped(stage, transition.message or "cancelled")
                break

            try:
                result = await self._executor.execute(stage, run)
            except ContractViolation as e:
                lifecycle.on_stage_halted(str(e))
                self._mark_stopped(stage, str(e))
                raise
            except asyncio.CancelledError:
                lifecycle.on_stage_halted(CANCELLED_REASON)
                self._mark_stopped(stage, CANCELLED_REASON)
                raise

            if result.passed:
                transition = lifecycle.on_stage_passed()
                if transition.effect is Effect.COMPLETE:
                    run.status = RunStatus.COMPLETED
                    logger.info("Run %s completed", run.run_id)
                    self.event_sink.on_run_completed(run)
            else:
                reason = result.halt_reason or f"stage {result.status.value}"
                lifecycle.on_stage_halted(reason)
                self._mark_stopped(stage, reason)

        return run

    async def run(self, spec_path: Path) -> Summary:
        """Run the whole pipeline for one specification and summarize it.

        The Summary is available through summary() even when this raises.
        """
        run = self.start(spec_path)
        log_path = None
        if self.runs_dir is not None:
            log_path = configure_debug_logging(run.run_id, self.runs_dir)
            if log_path is not None:
                logger.debug("Debug log: %s", log_path)
        try:
            await self.advance()
        finally:
            if log_path is not None:
                cleanup_debug_logging(run.run_id)
        return self.summary()

    def cancel(self) -> None:
        """Request cancellation; honored before the next stage starts."""
        logger.info("Cancellation requested")
        self._cancel_requested = True

    def summary(self) -> Summary:
        """Build the Summary for the current run.

        Raises:
            RuntimeError: If no run has been started.
        """
        if self._run is None:
            raise RuntimeError("No pipeline run to summarize")
        return self.reporter.build(self._run, self.stages)

    def _mark_stopped(self, stage: Stage, reason: str) -> None:
        run = self._run
        assert run is not None
        run.status = RunStatus.STOPPED
        run.stopped_at = stage.ordinal
        run.halt_reason = reason
        logger.info("Run %s stopped at stage %d: %s", run.run_id, stage.ordinal, reason)
        self.event_sink.on_run_halted(run, reason)
