"""Stop-Condition Evaluator: the single source of halt policy.

Each stage names a predicate from the table below. Predicates inspect only
the StageResult (and the configured iteration cap), never stage content, and
return the StageHalt describing why the run must stop, or None to continue.
The evaluator holds no state other than the iteration cap.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

from featurepipe.core.errors import DelegationExhausted, StageHalt
from featurepipe.domain.stages import StopCondition

if TYPE_CHECKING:
    from featurepipe.core.models import StageResult
    from featurepipe.domain.stages import Stage

Predicate = Callable[["StageResult", int], "StageHalt | None"]


def _fundamental_design_issue(result: StageResult, max_iterations: int) -> StageHalt | None:
    if not result.halt_suggested:
        return None
    reason = result.halt_reason or "fundamental design issue reported"
    return StageHalt(result.stage_id, reason)


def _major_rewrite_required(result: StageResult, max_iterations: int) -> StageHalt | None:
    if not result.halt_suggested:
        return None
    reason = result.halt_reason or "major rewrite required; caller approval needed"
    return StageHalt(result.stage_id, reason)


def _blocking_issue(result: StageResult, max_iterations: int) -> StageHalt | None:
    blocking = [issue for issue in result.issues if issue.blocking]
    if blocking:
        described = "; ".join(issue.description for issue in blocking[:3])
        more = f" (+{len(blocking) - 3} more)" if len(blocking) > 3 else ""
        return StageHalt(
            result.stage_id, f"{len(blocking)} blocking issue(s): {described}{more}"
        )
    if result.halt_suggested:
        return StageHalt(
            result.stage_id, result.halt_reason or "blocking issue reported"
        )
    return None


def _iteration_cap(result: StageResult, max_iterations: int) -> StageHalt | None:
    terminal_ok = bool(result.tests_passed) and result.consistency_passed is not False
    if terminal_ok:
        return None
    if (result.iterations or 0) < max_iterations:
        return None
    return DelegationExhausted(
        result.stage_id,
        iterations=result.iterations or 0,
        tests_passed=result.tests_passed,
        consistency_passed=result.consistency_passed,
    )


def _never(result: StageResult, max_iterations: int) -> StageHalt | None:
    return None


STOP_PREDICATES: dict[StopCondition, Predicate] = {
    StopCondition.FUNDAMENTAL_DESIGN_ISSUE: _fundamental_design_issue,
    StopCondition.MAJOR_REWRITE_REQUIRED: _major_rewrite_required,
    StopCondition.BLOCKING_ISSUE: _blocking_issue,
    StopCondition.ITERATION_CAP: _iteration_cap,
    StopCondition.NEVER: _never,
}


@dataclass(frozen=True)
class StopConditionEvaluator:
    """Decides whether a stage's result halts the run.

    Attributes:
        max_iterations: Configured cap for the bounded implementation loop.
    """

    max_iterations: int = 10

    def evaluate(self, stage: Stage, result: StageResult) -> StageHalt | None:
        """Return the halt for this result, or None if the run continues."""
        predicate = STOP_PREDICATES[stage.stop_condition]
        return predicate(result, self.max_iterations)
