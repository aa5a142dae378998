"""Core data model for featurepipe runs.

Contains the value types shared by every layer: artifacts, stage results,
delegated task payloads, the mutable PipelineRun root and the Summary that the
reporter renders. These types carry no behavior beyond small derived
properties so they can be constructed freely in tests.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path


class ArtifactKind(Enum):
    """Kinds of artifact that flow between stages."""

    SPECIFICATION = "specification"
    VERIFICATION_REPORT = "verification-report"
    TEST_FILE = "test-file"
    IMPLEMENTATION_GUIDE = "implementation-guide"
    CODE_CHANGE_SET = "code-change-set"
    REVIEW_REPORT = "review-report"


def content_hash(body: str) -> str:
    """Return the sha256 hex digest used for artifact idempotence checks."""
    return hashlib.sha256(body.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class ArtifactDraft:
    """Artifact content returned by a handler, before the store persists it.

    Attributes:
        kind: Which artifact kind this draft produces.
        body: Free-text findings/body written below the front matter.
        references: Optional paths the draft points at (e.g. test files the
            delegated test writer created inside the codebase).
    """

    kind: ArtifactKind
    body: str
    references: tuple[str, ...] = ()


@dataclass(frozen=True)
class Artifact:
    """A persisted, immutable unit of stage output.

    Attributes:
        kind: Artifact kind.
        feature: Feature name derived from the initiating specification.
        producing_stage: Stage id that wrote the artifact ("input" for the
            initiating specification).
        path: Storage path of the artifact file.
        content_hash: sha256 of the body.
        body: Artifact body text.
        run_id: Run that produced the artifact.
        references: Extra paths carried over from the draft.
    """

    kind: ArtifactKind
    feature: str
    producing_stage: str
    path: Path
    content_hash: str
    body: str
    run_id: str
    references: tuple[str, ...] = ()

    @property
    def short_ref(self) -> str:
        """File name used in summary tables."""
        return self.path.name


@dataclass(frozen=True)
class Issue:
    """A single finding reported by an analytical handler.

    ``blocking`` marks issues that reference an artifact, symbol or dependency
    that does not exist; the verification stage halts on any of them.
    """

    description: str
    blocking: bool = False
    location: str | None = None


@dataclass(frozen=True)
class HandlerOutput:
    """Uniform return value of a direct stage handler."""

    findings: str
    outputs: list[ArtifactDraft] = field(default_factory=list)
    halt_suggested: bool = False
    halt_reason: str | None = None
    issues: list[Issue] = field(default_factory=list)


@dataclass(frozen=True)
class TaskRequest:
    """Input handed to a delegated task on every invocation.

    Attributes:
        stage_id: Stage the delegation belongs to.
        feature: Feature name of the run.
        inputs: Resolved input artifacts (specification or guide plus tests).
        test_command: Command the gateway uses to judge success, if any.
        iteration: 1-based iteration number within a bounded loop.
        feedback: Failure output from the previous iteration's checks.
    """

    stage_id: str
    feature: str
    inputs: tuple[Artifact, ...]
    test_command: str | None = None
    iteration: int = 1
    feedback: str | None = None


@dataclass(frozen=True)
class TaskOutput:
    """What a delegated task returns from one invocation."""

    artifacts: list[ArtifactDraft] = field(default_factory=list)
    summary: str = ""


@dataclass
class TaskResult:
    """Outcome of a gateway delegation (single call or bounded loop).

    Attributes:
        artifacts: Drafts from the last successful invocation.
        success: For single delegation, whether the task ran and produced
            output; for a bounded loop, whether the terminal check passed.
        iterations: Number of task invocations consumed.
        tests_passed: Result of the last test command run (None if not run).
        consistency_passed: Result of the last consistency check (None if
            not run).
        anomaly: Set when freshly authored tests pass before implementation.
        findings: Human-readable account of the delegation.
    """

    artifacts: list[ArtifactDraft] = field(default_factory=list)
    success: bool = False
    iterations: int = 0
    tests_passed: bool | None = None
    consistency_passed: bool | None = None
    anomaly: str | None = None
    findings: str = ""


class StageStatus(Enum):
    """Status of a single executed stage."""

    PASS = "pass"
    FAIL = "fail"
    STOPPED = "stopped"


@dataclass
class StageResult:
    """Outcome of executing one stage.

    Attributes:
        stage_id: Stage identifier.
        ordinal: 1-based stage position.
        status: pass, fail or stopped.
        artifacts: Artifacts the stage produced (already persisted).
        findings: Free-text findings from the handler or delegation.
        iterations: Iteration count for delegated stages, None otherwise.
        halt_reason: Why the stage failed or halted.
        halt_suggested: Raw handler halt flag, evaluated by the stop policy.
        issues: Issues reported by the handler.
        tests_passed: Last known test status for delegated stages.
        consistency_passed: Last known consistency status for delegated stages.
        anomaly: Anomaly note surfaced by the gateway.
    """

    stage_id: str
    ordinal: int
    status: StageStatus
    artifacts: list[Artifact] = field(default_factory=list)
    findings: str = ""
    iterations: int | None = None
    halt_reason: str | None = None
    halt_suggested: bool = False
    issues: list[Issue] = field(default_factory=list)
    tests_passed: bool | None = None
    consistency_passed: bool | None = None
    anomaly: str | None = None

    @property
    def passed(self) -> bool:
        return self.status is StageStatus.PASS

    @property
    def primary_artifact(self) -> Artifact | None:
        return self.artifacts[0] if self.artifacts else None


class RunStatus(Enum):
    """Overall state of a PipelineRun."""

    RUNNING = "running"
    STOPPED = "stopped"
    COMPLETED = "completed"


@dataclass
class PipelineRun:
    """Mutable root of a single orchestration run.

    The run owns its StageResults; ``history`` must only be appended to by the
    Stage Executor.
    """

    run_id: str
    spec_path: Path
    feature: str
    history: list[StageResult] = field(default_factory=list)
    current_index: int = 0
    status: RunStatus = RunStatus.RUNNING
    stopped_at: int | None = None
    halt_reason: str | None = None

    @property
    def status_label(self) -> str:
        """Status string: ``running``, ``completed`` or ``stopped_at_stage_N``."""
        if self.status is RunStatus.STOPPED:
            return f"stopped_at_stage_{self.stopped_at}"
        return self.status.value

    def result_for(self, stage_id: str) -> StageResult | None:
        """Return the latest result recorded for a stage id."""
        for result in reversed(self.history):
            if result.stage_id == stage_id:
                return result
        return None


@dataclass(frozen=True)
class SummaryRow:
    """One row of the summary table."""

    ordinal: int
    name: str
    status: str
    output_ref: str
    iterations: int | None = None


@dataclass(frozen=True)
class Summary:
    """Fixed-schema account of a run, rendered by the Summary Reporter."""

    run_id: str
    feature: str
    rows: list[SummaryRow]
    overall_status: str
    halt_reason: str | None = None

    @property
    def completed(self) -> bool:
        return self.overall_status == "COMPLETED"
