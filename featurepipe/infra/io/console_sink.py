"""Console event sink implementation for PipelineOrchestrator.

Provides ConsoleEventSink which prints orchestrator events using the log
helpers from featurepipe.infra.io.console.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from featurepipe.core.models import StageStatus
from featurepipe.infra.io.console import Colors, log, log_verbose, truncate_text
from featurepipe.infra.io.event_sink import NullEventSink

if TYPE_CHECKING:
    from featurepipe.core.models import Artifact, PipelineRun, StageResult
    from featurepipe.domain.stages import Stage


def _check_word(value: bool | None) -> str:
    if value is None:
        return f"{Colors.MUTED}skipped{Colors.RESET}"
    if value:
        return f"{Colors.GREEN}pass{Colors.RESET}"
    return f"{Colors.RED}fail{Colors.RESET}"


class ConsoleEventSink(NullEventSink):
    """Event sink that writes a line per pipeline event to stdout.

    Example:
        sink = ConsoleEventSink()
        orchestrator = create_orchestrator(cwd, deps=PipelineDependencies(event_sink=sink))
        await orchestrator.run(spec_path)  # Produces console output
    """

    # -------------------------------------------------------------------------
    # Run lifecycle
    # -------------------------------------------------------------------------

    def on_run_started(self, run: PipelineRun, stage_count: int) -> None:
        log("→", f"[START] {run.feature} ({stage_count} stages)")
        log_verbose("◦", f"Run: {run.run_id}")
        log_verbose("◦", f"Specification: {run.spec_path}")

    def on_run_halted(self, run: PipelineRun, reason: str) -> None:
        log(
            "✗",
            f"{Colors.RED}STOPPED{Colors.RESET} at stage {run.stopped_at}: {reason}",
        )

    def on_run_completed(self, run: PipelineRun) -> None:
        log("✓", f"{Colors.GREEN}COMPLETED{Colors.RESET} {run.feature}")

    # -------------------------------------------------------------------------
    # Stage lifecycle
    # -------------------------------------------------------------------------

    def on_stage_started(self, stage: Stage, run: PipelineRun) -> None:
        log("▶", f"{stage.ordinal}. {stage.name}", stage_id=stage.id)

    def on_stage_completed(self, stage: Stage, result: StageResult) -> None:
        if result.status is StageStatus.PASS:
            log("✓", stage.success_label, Colors.GREEN, stage_id=stage.id)
        else:
            label = "FAIL" if result.status is StageStatus.FAIL else "HALT"
            reason = truncate_text(result.halt_reason or "", 200)
            log("✗", f"{label}: {reason}", Colors.RED, stage_id=stage.id)
        if result.findings:
            log_verbose("◦", truncate_text(result.findings, 400), stage_id=stage.id)

    def on_artifact_written(self, artifact: Artifact) -> None:
        log_verbose(
            "◦",
            f"Wrote {artifact.kind.value}: {artifact.path}",
            stage_id=artifact.producing_stage,
        )

    # -------------------------------------------------------------------------
    # Delegation
    # -------------------------------------------------------------------------

    def on_iteration(
        self,
        stage_id: str,
        iteration: int,
        max_iterations: int,
        tests_passed: bool,
        consistency_passed: bool | None,
    ) -> None:
        log(
            "↻",
            f"Iteration {iteration}/{max_iterations}: tests {_check_word(tests_passed)}, "
            f"check {_check_word(consistency_passed)}",
            stage_id=stage_id,
        )

    def on_anomaly(self, stage_id: str, message: str) -> None:
        log("⚠", message, Colors.YELLOW, stage_id=stage_id)
