"""Agent Invocation Gateway: uniform delegation to bounded sub-tasks.

The gateway treats a DelegatedTask as an opaque capability. It supplies the
inputs and a test command, then judges success itself by running the test
command (and, in a bounded loop, the static consistency check) in the
repository:

- single delegation runs the task once and the tests once; passing tests at
  this point are reported as an anomaly because nothing is implemented yet;
- bounded delegation repeats the task with the previous iteration's failure
  output until tests and check pass or the iteration cap is reached.

Any exception raised by the task is wrapped in InvocationFailure.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING

from featurepipe.core.errors import InvocationFailure
from featurepipe.core.models import TaskResult

if TYPE_CHECKING:
    from featurepipe.core.models import TaskOutput, TaskRequest
    from featurepipe.core.protocols import (
        CommandRunnerPort,
        DelegatedTask,
        PipelineEventSink,
    )
    from featurepipe.infra.command_runner import CommandResult

logger = logging.getLogger(__name__)

ANOMALY_TESTS_PASS = (
    "authored tests already pass before implementation; "
    "they may not exercise the new behavior"
)


@dataclass(frozen=True)
class BoundedLoop:
    """Parameters of a looping delegation.

    Attributes:
        max_iterations: Iteration cap; the loop never invokes the task more often.
        test_command: Command that must exit 0 for an iteration to succeed.
        check_command: Static type/consistency check run after passing tests.
            None disables the check.
    """

    max_iterations: int
    test_command: str
    check_command: str | None = None

    def __post_init__(self) -> None:
        if self.max_iterations < 1:
            raise ValueError(
                f"max_iterations must be a positive integer, got {self.max_iterations}"
            )


class AgentInvocationGateway:
    """Invokes delegated tasks and evaluates their success.

    Usage:
        gateway = AgentInvocationGateway(CommandRunner(cwd=repo_path))
        result = await gateway.invoke(task, request)
        result = await gateway.invoke(task, request, BoundedLoop(10, "pytest"))
    """

    def __init__(
        self,
        command_runner: CommandRunnerPort,
        event_sink: PipelineEventSink | None = None,
        command_timeout: float | None = None,
    ) -> None:
        self.command_runner = command_runner
        self.event_sink = event_sink
        self.command_timeout = command_timeout

    async def invoke(
        self,
        task: DelegatedTask,
        request: TaskRequest,
        bounded_loop: BoundedLoop | None = None,
    ) -> TaskResult:
        """Run a delegation, looping when ``bounded_loop`` is given.

        Raises:
            InvocationFailure: If the task cannot be invoked or crashes.
        """
        if bounded_loop is None:
            return await self._invoke_once(task, request)
        return await self._invoke_loop(task, request, bounded_loop)

    async def _invoke_once(self, task: DelegatedTask, request: TaskRequest) -> TaskResult:
        output = await self._perform(task, request)
        result = TaskResult(
            artifacts=list(output.artifacts),
            success=bool(output.artifacts),
            iterations=1,
            findings=output.summary,
        )

        if request.test_command:
            tests = await self._run_command(request.test_command)
            result.tests_passed = tests.ok
            if tests.ok:
                result.anomaly = ANOMALY_TESTS_PASS
                logger.warning("%s: %s", request.stage_id, ANOMALY_TESTS_PASS)
                if self.event_sink is not None:
                    self.event_sink.on_anomaly(request.stage_id, ANOMALY_TESTS_PASS)
            status = "pass (anomaly)" if tests.ok else "fail (expected)"
            result.findings = _join(output.summary, f"Authored tests: {status}")
        return result

    async def _invoke_loop(
        self, task: DelegatedTask, request: TaskRequest, loop: BoundedLoop
    ) -> TaskResult:
        result = TaskResult()
        feedback = request.feedback
        summary = ""

        for iteration in range(1, loop.max_iterations + 1):
            attempt = replace(
                request,
                iteration=iteration,
                feedback=feedback,
                test_command=loop.test_command,
            )
            result.iterations = iteration
            try:
                output = await self._perform(task, attempt)
            except InvocationFailure as e:
                result.findings = _join(
                    summary, f"Delegated task crashed on iteration {iteration}"
                )
                e.result = result
                raise
            if output.artifacts:
                result.artifacts = list(output.artifacts)
            summary = output.summary or summary

            tests = await self._run_command(loop.test_command)
            result.tests_passed = tests.ok
            result.consistency_passed = None
            failing: CommandResult | None = None if tests.ok else tests

            if tests.ok and loop.check_command:
                check = await self._run_command(loop.check_command)
                result.consistency_passed = check.ok
                if not check.ok:
                    failing = check

            logger.info(
                "%s iteration %d/%d: tests=%s check=%s",
                request.stage_id,
                iteration,
                loop.max_iterations,
                result.tests_passed,
                result.consistency_passed,
            )
            if self.event_sink is not None:
                self.event_sink.on_iteration(
                    request.stage_id,
                    iteration,
                    loop.max_iterations,
                    tests.ok,
                    result.consistency_passed,
                )

            if failing is None:
                result.success = True
                break
            feedback = f"$ {failing.command}\n{failing.failure_output()}"

        if result.success:
            status = f"Terminal check passed after {result.iterations} iteration(s)"
        else:
            status = f"Terminal check still failing after {result.iterations} iteration(s)"
        result.findings = _join(summary, status)
        return result

    async def _perform(self, task: DelegatedTask, request: TaskRequest) -> TaskOutput:
        try:
            return await task.perform(request)
        except Exception as e:
            logger.exception("Delegated task for %s failed", request.stage_id)
            raise InvocationFailure(request.stage_id, e) from e

    async def _run_command(self, command: str) -> CommandResult:
        return await asyncio.to_thread(
            self.command_runner.run, command, timeout=self.command_timeout, shell=True
        )


def _join(*parts: str) -> str:
    return "\n\n".join(part.strip() for part in parts if part and part.strip())
