"""Summary Reporter: fixed-schema account of a run.

One row per defined stage, in ordinal order. Executed stages show their
success label (PASS, CREATED, DONE) or FAIL; unreached stages show N/A.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tabulate import tabulate

from featurepipe.core.models import RunStatus, Summary, SummaryRow

if TYPE_CHECKING:
    from collections.abc import Sequence

    from featurepipe.core.models import PipelineRun
    from featurepipe.domain.stages import Stage

NOT_REACHED = "N/A"
FAILED = "FAIL"
NO_OUTPUT = "-"

HEADERS = ["#", "Stage", "Status", "Output"]


class SummaryReporter:
    """Builds and renders run summaries."""

    def build(self, run: PipelineRun, stages: Sequence[Stage]) -> Summary:
        rows: list[SummaryRow] = []
        for stage in stages:
            result = run.result_for(stage.id)
            if result is None:
                rows.append(SummaryRow(stage.ordinal, stage.name, NOT_REACHED, NO_OUTPUT))
                continue
            primary = result.primary_artifact
            rows.append(
                SummaryRow(
                    ordinal=stage.ordinal,
                    name=stage.name,
                    status=stage.success_label if result.passed else FAILED,
                    output_ref=primary.short_ref if primary else NO_OUTPUT,
                    iterations=result.iterations,
                )
            )
        return Summary(
            run_id=run.run_id,
            feature=run.feature,
            rows=rows,
            overall_status=overall_status(run),
            halt_reason=run.halt_reason,
        )

    def render(self, summary: Summary) -> str:
        """Render the summary as a plain-text table plus the overall status."""
        table = tabulate(
            [[row.ordinal, row.name, row.status, row.output_ref] for row in summary.rows],
            headers=HEADERS,
            tablefmt="simple",
        )
        lines = [f"Feature: {summary.feature}", "", table, "", summary.overall_status]
        if summary.halt_reason:
            lines.append(f"Reason: {summary.halt_reason}")
        return "\n".join(lines)


def overall_status(run: PipelineRun) -> str:
    """``COMPLETED``, ``STOPPED_AT_STAGE_<n>`` or ``RUNNING``."""
    if run.status is RunStatus.STOPPED:
        return f"STOPPED_AT_STAGE_{run.stopped_at}"
    return run.status.value.upper()
