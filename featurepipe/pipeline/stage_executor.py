"""Stage Executor: runs one stage against a PipelineRun.

execute(stage, run) resolves the stage's declared inputs, dispatches to a
direct StageHandler or through the Agent Invocation Gateway, persists the
returned drafts, applies the stop condition and appends the StageResult to
the run history. It is the only code that mutates ``run.history``.

Recoverable failures (crashed handler or task, cross-run artifact conflict)
become a ``fail`` result. Contract violations propagate to the orchestrator.
"""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from featurepipe.core.errors import (
    ArtifactConflictError,
    ContractViolation,
    InvocationFailure,
)
from featurepipe.core.models import StageResult, StageStatus, TaskRequest
from featurepipe.domain.stages import HandlerMode
from featurepipe.pipeline.agent_gateway import BoundedLoop

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence

    from featurepipe.core.models import Artifact, ArtifactDraft, PipelineRun
    from featurepipe.core.protocols import (
        DelegatedTask,
        PipelineEventSink,
        StageHandler,
    )
    from featurepipe.domain.stages import Stage
    from featurepipe.domain.stop_conditions import StopConditionEvaluator
    from featurepipe.infra.artifact_store import ArtifactStore
    from featurepipe.pipeline.agent_gateway import AgentInvocationGateway

logger = logging.getLogger(__name__)

CANCELLED_REASON = "cancelled while the stage was running"


class StageExecutor:
    """Executes stages for a single run.

    Attributes:
        store: Run-scoped artifact store.
        handlers: Direct handlers keyed by stage id.
        tasks: Delegated tasks keyed by stage id.
        gateway: Gateway used for delegated stages.
        evaluator: Stop-condition policy.
        test_command: Command handed to delegated stages.
        check_command: Static consistency check for the bounded loop.
        event_sink: Receives stage events.
    """

    def __init__(
        self,
        store: ArtifactStore,
        handlers: Mapping[str, StageHandler],
        tasks: Mapping[str, DelegatedTask],
        gateway: AgentInvocationGateway,
        evaluator: StopConditionEvaluator,
        event_sink: PipelineEventSink,
        test_command: str | None = None,
        check_command: str | None = None,
    ) -> None:
        self.store = store
        self.handlers = handlers
        self.tasks = tasks
        self.gateway = gateway
        self.evaluator = evaluator
        self.event_sink = event_sink
        self.test_command = test_command
        self.check_command = check_command

    async def execute(self, stage: Stage, run: PipelineRun) -> StageResult:
        """Execute ``stage`` and record its result in ``run.history``.

        Raises:
            ContractViolation: If a declared input is missing, no handler is
                bound to the stage, or the handler writes an artifact kind the
                stage does not own.
            asyncio.CancelledError: Re-raised after a ``fail`` result is recorded.
        """
        inputs, missing = self.store.resolve(stage.inputs)
        if missing:
            raise ContractViolation(stage.id, missing)

        self.event_sink.on_stage_started(stage, run)
        logger.info("Executing stage %d (%s)", stage.ordinal, stage.id)

        try:
            if stage.mode is HandlerMode.DIRECT:
                result = await self._run_direct(stage, inputs)
            else:
                result = await self._run_delegated(stage, run, inputs)
        except ContractViolation:
            raise
        except asyncio.CancelledError:
            self._record(stage, run, self._failed(stage, CANCELLED_REASON))
            raise
        except InvocationFailure as e:
            result = self._failed(stage, str(e))
            if e.result is not None:
                result.iterations = e.result.iterations
                result.tests_passed = e.result.tests_passed
                result.consistency_passed = e.result.consistency_passed
                result.findings = e.result.findings
        except ArtifactConflictError as e:
            result = self._failed(stage, str(e))
        except Exception as e:
            logger.exception("Handler for stage %s raised", stage.id)
            result = self._failed(stage, str(InvocationFailure(stage.id, e)))

        if result.status is StageStatus.PASS:
            self._apply_stop_condition(stage, result)
        if result.status is StageStatus.PASS:
            self._check_outcome(stage, result)
        self._record(stage, run, result)
        return result

    async def _run_direct(
        self, stage: Stage, inputs: Sequence[Artifact]
    ) -> StageResult:
        handler = self.handlers.get(stage.id)
        if handler is None:
            raise ContractViolation(
                stage.id, [], message=f"No handler bound to stage '{stage.id}'"
            )
        output = await handler.handle(list(inputs))
        artifacts = self._persist(stage, output.outputs)
        return StageResult(
            stage_id=stage.id,
            ordinal=stage.ordinal,
            status=StageStatus.PASS,
            artifacts=artifacts,
            findings=output.findings,
            halt_reason=output.halt_reason if output.halt_suggested else None,
            halt_suggested=output.halt_suggested,
            issues=list(output.issues),
        )

    async def _run_delegated(
        self, stage: Stage, run: PipelineRun, inputs: Sequence[Artifact]
    ) -> StageResult:
        task = self.tasks.get(stage.id)
        if task is None:
            raise ContractViolation(
                stage.id, [], message=f"No delegated task bound to stage '{stage.id}'"
            )
        request = TaskRequest(
            stage_id=stage.id,
            feature=run.feature,
            inputs=tuple(inputs),
            test_command=self.test_command,
        )
        bounded_loop = None
        if stage.mode is HandlerMode.BOUNDED_LOOP:
            if not self.test_command:
                raise ContractViolation(
                    stage.id, [], message=f"Stage '{stage.id}' needs a test command"
                )
            bounded_loop = BoundedLoop(
                max_iterations=self.evaluator.max_iterations,
                test_command=self.test_command,
                check_command=self.check_command,
            )

        task_result = await self.gateway.invoke(task, request, bounded_loop)
        artifacts = self._persist(stage, task_result.artifacts)
        result = StageResult(
            stage_id=stage.id,
            ordinal=stage.ordinal,
            status=StageStatus.PASS,
            artifacts=artifacts,
            findings=task_result.findings,
            iterations=task_result.iterations,
            tests_passed=task_result.tests_passed,
            consistency_passed=task_result.consistency_passed,
            anomaly=task_result.anomaly,
        )
        if bounded_loop is None and not task_result.success:
            result.status = StageStatus.FAIL
            result.halt_reason = "delegated task produced no artifacts"
        return result

    def _persist(self, stage: Stage, drafts: Sequence[ArtifactDraft]) -> list[Artifact]:
        artifacts: list[Artifact] = []
        for draft in drafts:
            if draft.kind not in stage.outputs:
                raise ContractViolation(
                    stage.id,
                    [draft.kind],
                    message=(
                        f"Stage '{stage.id}' returned {draft.kind.value}, "
                        "which it does not declare as an output"
                    ),
                )
            artifacts.append(self.store.write(stage.id, draft))
        return artifacts

    def _check_outcome(self, stage: Stage, result: StageResult) -> None:
        """Fail a stage that passed its stop condition but left work undone."""
        if stage.mode is HandlerMode.BOUNDED_LOOP and not (
            result.tests_passed and result.consistency_passed is not False
        ):
            result.status = StageStatus.FAIL
            result.halt_reason = "terminal check did not pass"
            return
        produced = {artifact.kind for artifact in result.artifacts}
        absent = [kind for kind in stage.outputs if kind not in produced]
        if absent:
            result.status = StageStatus.FAIL
            result.halt_reason = "stage did not produce: " + ", ".join(
                kind.value for kind in absent
            )

    def _apply_stop_condition(self, stage: Stage, result: StageResult) -> None:
        halt = self.evaluator.evaluate(stage, result)
        if halt is None:
            return
        logger.info("Stop condition %s fired: %s", stage.stop_condition.value, halt.reason)
        result.status = StageStatus.STOPPED
        result.halt_reason = halt.reason

    def _failed(self, stage: Stage, reason: str) -> StageResult:
        return StageResult(
            stage_id=stage.id,
            ordinal=stage.ordinal,
            status=StageStatus.FAIL,
            halt_reason=reason,
        )

    def _record(self, stage: Stage, run: PipelineRun, result: StageResult) -> None:
        run.history.append(result)
        self.event_sink.on_stage_completed(stage, result)
