"""Error taxonomy for featurepipe runs.

ContractViolation signals a wiring defect and is fatal to the run. StageHalt,
DelegationExhausted and InvocationFailure describe normal, recoverable ways a
run stops; the Stage Executor converts them into StageResults so the Summary
can always render.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from featurepipe.core.models import ArtifactKind, TaskResult


class PipelineError(Exception):
    """Base exception for featurepipe errors."""


class ContractViolation(PipelineError):
    """Raised when a stage's declared input artifact is missing.

    Indicates a defect in pipeline wiring rather than in the work itself.
    """

    def __init__(
        self, stage_id: str, missing: list[ArtifactKind], message: str | None = None
    ) -> None:
        self.stage_id = stage_id
        self.missing = missing
        if message is None:
            kinds = ", ".join(kind.value for kind in missing)
            message = f"Stage '{stage_id}' is missing input artifacts: {kinds}"
        super().__init__(message)


class SpecificationNotFound(PipelineError):
    """Raised when the initiating specification path is not a readable file."""

    def __init__(self, path: Path) -> None:
        self.path = path
        super().__init__(f"Specification not found: {path}")


class ArtifactOwnershipError(ContractViolation):
    """Raised when a stage writes an artifact kind owned by another stage."""

    def __init__(self, stage_id: str, kind: ArtifactKind, owner: str) -> None:
        self.owner = owner
        super().__init__(
            stage_id,
            [kind],
            message=(
                f"Stage '{stage_id}' cannot write {kind.value}: "
                f"already produced by stage '{owner}' in this run"
            ),
        )


class ArtifactConflictError(PipelineError):
    """Raised when an artifact file from another run would be overwritten."""

    def __init__(self, path: Path, other_run_id: str | None) -> None:
        self.path = path
        self.other_run_id = other_run_id
        owner = other_run_id or "an unknown run"
        super().__init__(
            f"Refusing to overwrite {path} written by {owner}; "
            "re-run with --force to replace it"
        )


class StageHalt(PipelineError):
    """A stage's stop condition fired."""

    def __init__(self, stage_id: str, reason: str) -> None:
        self.stage_id = stage_id
        self.reason = reason
        super().__init__(f"Stage '{stage_id}' halted the run: {reason}")


class DelegationExhausted(StageHalt):
    """The bounded implementation loop hit its iteration cap without success."""

    def __init__(
        self,
        stage_id: str,
        iterations: int,
        tests_passed: bool | None,
        consistency_passed: bool | None,
    ) -> None:
        self.iterations = iterations
        self.tests_passed = tests_passed
        self.consistency_passed = consistency_passed
        super().__init__(
            stage_id,
            f"iteration cap reached after {iterations} iteration(s) "
            f"(tests: {_status_word(tests_passed)}, "
            f"consistency check: {_status_word(consistency_passed)})",
        )


class InvocationFailure(PipelineError):
    """The delegated task could not be invoked or crashed.

    ``result`` carries the progress of a bounded loop that crashed part way
    through (iterations consumed, last test and check status).
    """

    def __init__(
        self,
        stage_id: str,
        cause: BaseException | str,
        result: TaskResult | None = None,
    ) -> None:
        self.stage_id = stage_id
        self.cause = cause
        self.result = result
        super().__init__(f"Delegated task for stage '{stage_id}' failed: {cause}")


def _status_word(value: bool | None) -> str:
    if value is None:
        return "not run"
    return "passing" if value else "failing"
