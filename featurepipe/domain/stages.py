"""Stage definitions for the feature pipeline.

Stages are immutable configuration created once at pipeline-definition time.
Handlers are referenced by the stage id; the factory binds each id to a
concrete StageHandler or DelegatedTask.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from featurepipe.core.models import ArtifactKind


class HandlerMode(Enum):
    """How the Stage Executor dispatches a stage."""

    # Direct synchronous call to an analytical StageHandler
    DIRECT = "direct"
    # Single delegated call through the gateway (e.g. test authoring)
    DELEGATED = "delegated"
    # Delegated call repeated until tests and consistency check pass
    BOUNDED_LOOP = "bounded_loop"


class StopCondition(Enum):
    """Names of the predicates in the stop-condition table."""

    FUNDAMENTAL_DESIGN_ISSUE = "fundamental_design_issue"
    MAJOR_REWRITE_REQUIRED = "major_rewrite_required"
    BLOCKING_ISSUE = "blocking_issue"
    ITERATION_CAP = "iteration_cap"
    NEVER = "never"


@dataclass(frozen=True)
class Stage:
    """Static definition of one pipeline stage.

    Attributes:
        id: Stable identifier, also used as the handler reference.
        ordinal: 1-based execution position.
        name: Human-readable name shown in the summary.
        inputs: Artifact kinds that must exist before the stage executes.
        outputs: Artifact kinds the stage is allowed to produce.
        mode: Dispatch mode (direct, delegated, bounded loop).
        stop_condition: Predicate name evaluated over the StageResult.
        success_label: Summary status rendered when the stage passes.
    """

    id: str
    ordinal: int
    name: str
    inputs: tuple[ArtifactKind, ...]
    outputs: tuple[ArtifactKind, ...]
    mode: HandlerMode
    stop_condition: StopCondition = StopCondition.NEVER
    success_label: str = "PASS"

    @property
    def is_delegated(self) -> bool:
        return self.mode is not HandlerMode.DIRECT


REFERENCE_STAGES: tuple[Stage, ...] = (
    Stage(
        id="architecture",
        ordinal=1,
        name="Architecture Analysis",
        inputs=(ArtifactKind.SPECIFICATION,),
        outputs=(),
        mode=HandlerMode.DIRECT,
        stop_condition=StopCondition.FUNDAMENTAL_DESIGN_ISSUE,
    ),
    Stage(
        id="simplification",
        ordinal=2,
        name="Simplification",
        inputs=(ArtifactKind.SPECIFICATION,),
        outputs=(),
        mode=HandlerMode.DIRECT,
        stop_condition=StopCondition.MAJOR_REWRITE_REQUIRED,
    ),
    Stage(
        id="verification",
        ordinal=3,
        name="Static Verification",
        inputs=(ArtifactKind.SPECIFICATION,),
        outputs=(ArtifactKind.VERIFICATION_REPORT,),
        mode=HandlerMode.DIRECT,
        stop_condition=StopCondition.BLOCKING_ISSUE,
    ),
    Stage(
        id="test_authoring",
        ordinal=4,
        name="Test Authoring",
        inputs=(ArtifactKind.SPECIFICATION, ArtifactKind.VERIFICATION_REPORT),
        outputs=(ArtifactKind.TEST_FILE,),
        mode=HandlerMode.DELEGATED,
        success_label="CREATED",
    ),
    Stage(
        id="implementation_guide",
        ordinal=5,
        name="Implementation Guide",
        inputs=(
            ArtifactKind.SPECIFICATION,
            ArtifactKind.VERIFICATION_REPORT,
            ArtifactKind.TEST_FILE,
        ),
        outputs=(ArtifactKind.IMPLEMENTATION_GUIDE,),
        mode=HandlerMode.DIRECT,
        success_label="CREATED",
    ),
    Stage(
        id="implementation",
        ordinal=6,
        name="Implementation Loop",
        inputs=(ArtifactKind.IMPLEMENTATION_GUIDE, ArtifactKind.TEST_FILE),
        outputs=(ArtifactKind.CODE_CHANGE_SET,),
        mode=HandlerMode.BOUNDED_LOOP,
        stop_condition=StopCondition.ITERATION_CAP,
        success_label="DONE",
    ),
    Stage(
        id="review",
        ordinal=7,
        name="Final Review",
        inputs=(ArtifactKind.SPECIFICATION, ArtifactKind.CODE_CHANGE_SET),
        outputs=(ArtifactKind.REVIEW_REPORT,),
        mode=HandlerMode.DIRECT,
        success_label="DONE",
    ),
)


def validate_stages(stages: tuple[Stage, ...] | list[Stage]) -> None:
    """Check ordinals run 1..N, ids are unique and each output kind has one owner.

    Raises:
        ValueError: If the stage list is malformed.
    """
    if not stages:
        raise ValueError("A pipeline needs at least one stage")
    ordinals = [stage.ordinal for stage in stages]
    if ordinals != list(range(1, len(stages) + 1)):
        raise ValueError(f"Stage ordinals must be 1..{len(stages)} in order, got {ordinals}")
    ids = [stage.id for stage in stages]
    duplicates = sorted({sid for sid in ids if ids.count(sid) > 1})
    if duplicates:
        raise ValueError(f"Duplicate stage ids: {', '.join(duplicates)}")

    owners: dict[ArtifactKind, str] = {}
    for stage in stages:
        for kind in stage.outputs:
            if kind in owners:
                raise ValueError(
                    f"{kind.value} is produced by both '{owners[kind]}' and '{stage.id}'"
                )
            owners[kind] = stage.id
