"""Builders wiring the reference pipeline to fakes."""

from __future__ import annotations

from typing import TYPE_CHECKING

from featurepipe.core.models import ArtifactKind
from featurepipe.domain.settings import ProjectSettings
from featurepipe.orchestration.factory import PipelineDependencies, create_orchestrator
from tests.fakes.command_runner import FakeCommandRunner, make_result
from tests.fakes.delegated_task import FakeDelegatedTask
from tests.fakes.event_sink import FakeEventSink
from tests.fakes.stage_handler import FakeStageHandler

if TYPE_CHECKING:
    from pathlib import Path

    from featurepipe.orchestration.orchestrator import PipelineOrchestrator

TEST_COMMAND = "pytest -q"
CHECK_COMMAND = "mypy ."


def passing_handlers() -> dict[str, FakeStageHandler]:
    """Direct handlers for the reference pipeline that all pass."""
    return {
        "architecture": FakeStageHandler(),
        "simplification": FakeStageHandler(),
        "verification": FakeStageHandler.producing(ArtifactKind.VERIFICATION_REPORT),
        "implementation_guide": FakeStageHandler.producing(
            ArtifactKind.IMPLEMENTATION_GUIDE
        ),
        "review": FakeStageHandler.producing(ArtifactKind.REVIEW_REPORT),
    }


def passing_tasks() -> dict[str, FakeDelegatedTask]:
    return {
        "test_authoring": FakeDelegatedTask(kind=ArtifactKind.TEST_FILE),
        "implementation": FakeDelegatedTask(kind=ArtifactKind.CODE_CHANGE_SET),
    }


def red_green_runner() -> FakeCommandRunner:
    """Tests fail once (after authoring), then pass; the check always passes."""
    return FakeCommandRunner(
        responses={
            TEST_COMMAND: [
                make_result(TEST_COMMAND, ok=False, output="1 failed"),
                make_result(TEST_COMMAND, ok=True, output="1 passed"),
            ],
            CHECK_COMMAND: make_result(CHECK_COMMAND, ok=True),
        }
    )


def make_orchestrator(
    repo_path: Path,
    *,
    handlers: dict[str, FakeStageHandler] | None = None,
    tasks: dict[str, FakeDelegatedTask] | None = None,
    runner: FakeCommandRunner | None = None,
    sink: FakeEventSink | None = None,
    max_iterations: int = 10,
    allow_overwrite: bool = False,
) -> PipelineOrchestrator:
    settings = ProjectSettings(
        test_command=TEST_COMMAND,
        check_command=CHECK_COMMAND,
        max_iterations=max_iterations,
    )
    deps = PipelineDependencies(
        event_sink=sink or FakeEventSink(),
        handlers=handlers if handlers is not None else passing_handlers(),
        tasks=tasks if tasks is not None else passing_tasks(),
        command_runner=runner or red_green_runner(),
    )
    return create_orchestrator(
        repo_path, settings=settings, deps=deps, allow_overwrite=allow_overwrite
    )
