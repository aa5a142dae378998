"""No-op event sink for featurepipe.

NullEventSink implements every PipelineEventSink method as a no-op. It is the
default sink for programmatic use and the base class for ConsoleEventSink.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from featurepipe.core.models import Artifact, PipelineRun, StageResult
    from featurepipe.domain.stages import Stage


class NullEventSink:
    """No-op event sink.

    Example:
        sink = NullEventSink()
        orchestrator = PipelineOrchestrator(..., event_sink=sink)
        await orchestrator.run(spec_path)  # No console output
    """

    def on_run_started(self, run: PipelineRun, stage_count: int) -> None:
        pass

    def on_stage_started(self, stage: Stage, run: PipelineRun) -> None:
        pass

    def on_stage_completed(self, stage: Stage, result: StageResult) -> None:
        pass

    def on_artifact_written(self, artifact: Artifact) -> None:
        pass

    def on_iteration(
        self,
        stage_id: str,
        iteration: int,
        max_iterations: int,
        tests_passed: bool,
        consistency_passed: bool | None,
    ) -> None:
        pass

    def on_anomaly(self, stage_id: str, message: str) -> None:
        pass

    def on_run_halted(self, run: PipelineRun, reason: str) -> None:
        pass

    def on_run_completed(self, run: PipelineRun) -> None:
        pass
