"""End-to-end orchestrator scenarios against fake handlers and commands."""

from pathlib import Path

import pytest

from featurepipe.core.errors import ContractViolation, SpecificationNotFound
from featurepipe.core.models import (
    ArtifactDraft,
    ArtifactKind,
    HandlerOutput,
    RunStatus,
    StageStatus,
)
from featurepipe.infra.artifact_store import ArtifactManager
from tests.fakes import FakeCommandRunner, FakeEventSink, FakeStageHandler, make_result
from tests.fakes.pipeline import (
    CHECK_COMMAND,
    TEST_COMMAND,
    make_orchestrator,
    passing_handlers,
)

ARTIFACT_FILES = [
    "FEAT47_verification_report.md",
    "FEAT47_tests.md",
    "FEAT47_implementation_guide.md",
    "FEAT47_changes.md",
    "FEAT47_review_report.md",
]


class CancellingHandler:
    """Passes, but asks the orchestrator to cancel before the next stage."""

    def __init__(self) -> None:
        self.orchestrator = None

    async def handle(self, inputs: object) -> HandlerOutput:
        assert self.orchestrator is not None
        self.orchestrator.cancel()
        return HandlerOutput(findings="ok")


class TestHappyPath:
    @pytest.mark.asyncio
    async def test_all_stages_complete(self, tmp_path: Path, spec_path: Path) -> None:
        sink = FakeEventSink()
        orchestrator = make_orchestrator(tmp_path, sink=sink)

        summary = await orchestrator.run(spec_path)

        assert summary.overall_status == "COMPLETED"
        assert summary.completed
        assert [row.status for row in summary.rows] == [
            "PASS",
            "PASS",
            "PASS",
            "CREATED",
            "CREATED",
            "DONE",
            "DONE",
        ]
        assert [row.output_ref for row in summary.rows] == ["-", "-", *ARTIFACT_FILES]
        for name in ARTIFACT_FILES:
            assert (spec_path.parent / name).is_file()
        assert sink.names()[-1] == "run_completed"

    @pytest.mark.asyncio
    async def test_stages_execute_in_ordinal_order(
        self, tmp_path: Path, spec_path: Path
    ) -> None:
        sink = FakeEventSink()
        orchestrator = make_orchestrator(tmp_path, sink=sink)

        await orchestrator.run(spec_path)

        run = orchestrator.pipeline_run
        assert run is not None
        assert [result.ordinal for result in run.history] == [1, 2, 3, 4, 5, 6, 7]
        assert sink.payloads("stage_started") == [
            "architecture",
            "simplification",
            "verification",
            "test_authoring",
            "implementation_guide",
            "implementation",
            "review",
        ]

    @pytest.mark.asyncio
    async def test_implementation_receives_guide_and_tests(
        self, tmp_path: Path, spec_path: Path
    ) -> None:
        from tests.fakes.pipeline import passing_tasks

        tasks = passing_tasks()
        orchestrator = make_orchestrator(tmp_path, tasks=tasks)

        await orchestrator.run(spec_path)

        request = tasks["implementation"].requests[0]
        assert [a.kind for a in request.inputs] == [
            ArtifactKind.IMPLEMENTATION_GUIDE,
            ArtifactKind.TEST_FILE,
        ]
        assert request.test_command == TEST_COMMAND


class TestHalting:
    @pytest.mark.asyncio
    async def test_architecture_halt(self, tmp_path: Path, spec_path: Path) -> None:
        handlers = passing_handlers()
        handlers["architecture"] = FakeStageHandler(
            output=HandlerOutput(
                findings="circular dependency between billing and ledger",
                halt_suggested=True,
                halt_reason="circular dependency between billing and ledger",
            )
        )
        orchestrator = make_orchestrator(tmp_path, handlers=handlers)

        summary = await orchestrator.run(spec_path)

        assert summary.overall_status == "STOPPED_AT_STAGE_1"
        assert summary.halt_reason == "circular dependency between billing and ledger"
        assert summary.rows[0].status == "FAIL"
        assert all(row.status == "N/A" for row in summary.rows[1:])
        assert all(row.output_ref == "-" for row in summary.rows[1:])
        assert handlers["simplification"].call_count == 0

    @pytest.mark.asyncio
    async def test_blocking_verification_issue(
        self, tmp_path: Path, spec_path: Path
    ) -> None:
        from featurepipe.core.models import Issue

        handlers = passing_handlers()
        handlers["verification"] = FakeStageHandler(
            output=HandlerOutput(
                findings="unknown module",
                outputs=[ArtifactDraft(ArtifactKind.VERIFICATION_REPORT, "missing")],
                issues=[Issue("module billing.export does not exist", blocking=True)],
            )
        )
        orchestrator = make_orchestrator(tmp_path, handlers=handlers)

        summary = await orchestrator.run(spec_path)

        assert summary.overall_status == "STOPPED_AT_STAGE_3"
        assert "billing.export" in (summary.halt_reason or "")
        assert summary.rows[2].output_ref == "FEAT47_verification_report.md"
        assert [row.status for row in summary.rows[3:]] == ["N/A"] * 4

    @pytest.mark.asyncio
    async def test_iteration_cap_stops_before_review(
        self, tmp_path: Path, spec_path: Path
    ) -> None:
        runner = FakeCommandRunner(
            responses={
                TEST_COMMAND: make_result(TEST_COMMAND, ok=False, output="2 failed"),
                CHECK_COMMAND: make_result(CHECK_COMMAND, ok=True),
            }
        )
        handlers = passing_handlers()
        sink = FakeEventSink()
        orchestrator = make_orchestrator(
            tmp_path, handlers=handlers, runner=runner, sink=sink
        )

        summary = await orchestrator.run(spec_path)

        assert summary.overall_status == "STOPPED_AT_STAGE_6"
        assert summary.rows[5].status == "FAIL"
        assert summary.rows[5].iterations == 10
        assert summary.rows[6].status == "N/A"
        assert handlers["review"].call_count == 0
        # one run after test authoring plus one per iteration
        assert runner.count(TEST_COMMAND) == 11
        assert len(sink.payloads("iteration")) == 10
        assert "iteration cap reached after 10 iteration(s)" in (summary.halt_reason or "")

    @pytest.mark.asyncio
    async def test_configured_cap_is_honored(self, tmp_path: Path, spec_path: Path) -> None:
        runner = FakeCommandRunner(
            responses={TEST_COMMAND: make_result(TEST_COMMAND, ok=False)}
        )
        orchestrator = make_orchestrator(tmp_path, runner=runner, max_iterations=2)

        summary = await orchestrator.run(spec_path)

        assert summary.rows[5].iterations == 2

    @pytest.mark.asyncio
    async def test_handler_crash_stops_run(self, tmp_path: Path, spec_path: Path) -> None:
        handlers = passing_handlers()
        handlers["simplification"] = FakeStageHandler(error=TimeoutError("agent timed out"))
        orchestrator = make_orchestrator(tmp_path, handlers=handlers)

        summary = await orchestrator.run(spec_path)

        assert summary.overall_status == "STOPPED_AT_STAGE_2"
        assert "agent timed out" in (summary.halt_reason or "")

    @pytest.mark.asyncio
    async def test_contract_violation_propagates(
        self, tmp_path: Path, spec_path: Path
    ) -> None:
        handlers = passing_handlers()
        handlers["architecture"] = FakeStageHandler.producing(ArtifactKind.REVIEW_REPORT)
        sink = FakeEventSink()
        orchestrator = make_orchestrator(tmp_path, handlers=handlers, sink=sink)

        with pytest.raises(ContractViolation):
            await orchestrator.run(spec_path)

        summary = orchestrator.summary()
        assert summary.overall_status == "STOPPED_AT_STAGE_1"
        assert sink.payloads("run_halted")[0][0] == 1


class TestCancellation:
    @pytest.mark.asyncio
    async def test_cancel_between_stages(self, tmp_path: Path, spec_path: Path) -> None:
        handlers = passing_handlers()
        cancelling = CancellingHandler()
        handlers["simplification"] = cancelling
        orchestrator = make_orchestrator(tmp_path, handlers=handlers)
        cancelling.orchestrator = orchestrator

        summary = await orchestrator.run(spec_path)

        assert summary.overall_status == "STOPPED_AT_STAGE_3"
        assert [row.status for row in summary.rows[:3]] == ["PASS", "PASS", "N/A"]
        assert handlers["verification"].call_count == 0
        assert "cancelled" in (summary.halt_reason or "")


class TestRunLifecycle:
    @pytest.mark.asyncio
    async def test_missing_specification(self, tmp_path: Path) -> None:
        orchestrator = make_orchestrator(tmp_path)

        with pytest.raises(SpecificationNotFound):
            await orchestrator.run(tmp_path / "docs" / "todo" / "NOPE_specification.md")
        assert orchestrator.pipeline_run is None

    def test_start_rejects_concurrent_run(self, tmp_path: Path, spec_path: Path) -> None:
        orchestrator = make_orchestrator(tmp_path)
        orchestrator.start(spec_path)

        with pytest.raises(RuntimeError, match="already active"):
            orchestrator.start(spec_path)

    @pytest.mark.asyncio
    async def test_orchestrator_can_run_again(self, tmp_path: Path, spec_path: Path) -> None:
        orchestrator = make_orchestrator(tmp_path)

        first = await orchestrator.run(spec_path)
        second = await orchestrator.run(spec_path)

        assert first.completed and second.completed
        assert first.run_id != second.run_id

    def test_summary_requires_a_run(self, tmp_path: Path) -> None:
        with pytest.raises(RuntimeError):
            make_orchestrator(tmp_path).summary()


class TestArtifactsAcrossRuns:
    @pytest.mark.asyncio
    async def test_identical_rerun_keeps_files(
        self, tmp_path: Path, spec_path: Path
    ) -> None:
        first = make_orchestrator(tmp_path)
        await first.run(spec_path)
        report = spec_path.parent / "FEAT47_verification_report.md"
        before = report.read_text()

        second = make_orchestrator(tmp_path)
        summary = await second.run(spec_path)

        assert summary.completed
        assert report.read_text() == before
        first_run = first.pipeline_run
        assert first_run is not None
        header = ArtifactManager(spec_path.parent, "FEAT47").read_header(report)
        assert header is not None
        assert header["run_id"] == first_run.run_id

    @pytest.mark.asyncio
    async def test_changed_findings_conflict_without_force(
        self, tmp_path: Path, spec_path: Path
    ) -> None:
        await make_orchestrator(tmp_path).run(spec_path)

        handlers = passing_handlers()
        handlers["verification"] = FakeStageHandler.producing(
            ArtifactKind.VERIFICATION_REPORT, "revised report"
        )
        orchestrator = make_orchestrator(tmp_path, handlers=handlers)
        summary = await orchestrator.run(spec_path)

        assert summary.overall_status == "STOPPED_AT_STAGE_3"
        assert "--force" in (summary.halt_reason or "")
        run = orchestrator.pipeline_run
        assert run is not None
        assert run.history[-1].status is StageStatus.FAIL

    @pytest.mark.asyncio
    async def test_force_overwrites(self, tmp_path: Path, spec_path: Path) -> None:
        await make_orchestrator(tmp_path).run(spec_path)

        handlers = passing_handlers()
        handlers["verification"] = FakeStageHandler.producing(
            ArtifactKind.VERIFICATION_REPORT, "revised report"
        )
        orchestrator = make_orchestrator(tmp_path, handlers=handlers, allow_overwrite=True)
        summary = await orchestrator.run(spec_path)

        assert summary.completed
        report = spec_path.parent / "FEAT47_verification_report.md"
        assert report.read_text().rstrip().endswith("revised report")
        run = orchestrator.pipeline_run
        assert run is not None and run.status is RunStatus.COMPLETED
