"""In-memory fake implementations for testing.

Fakes implement the real protocol contracts and record what they were asked
to do, so tests assert on outputs and recorded state rather than call order.

Available fakes:
- FakeStageHandler: Scripted StageHandler returning canned HandlerOutputs
- FakeDelegatedTask: Scripted DelegatedTask recording every TaskRequest
- FakeCommandRunner: Deterministic command execution with fail-closed semantics
- FakeEventSink: Event capture for asserting what the orchestrator reported
- FakeSDKClient / FakeSDKClientFactory: Canned Agent SDK sessions

Usage:
    from tests.fakes import FakeCommandRunner, FakeStageHandler

    def test_something():
        runner = FakeCommandRunner(responses={"pytest": [fail, ok]})
"""

from tests.fakes.command_runner import FakeCommandRunner, make_result
from tests.fakes.delegated_task import FakeDelegatedTask
from tests.fakes.event_sink import FakeEventSink
from tests.fakes.sdk_client import (
    FakeAssistantMessage,
    FakeResultMessage,
    FakeSDKClient,
    FakeSDKClientFactory,
    FakeTextBlock,
)
from tests.fakes.stage_handler import FakeStageHandler

__all__ = [
    "FakeAssistantMessage",
    "FakeCommandRunner",
    "FakeDelegatedTask",
    "FakeEventSink",
    "FakeResultMessage",
    "FakeSDKClient",
    "FakeSDKClientFactory",
    "FakeStageHandler",
    "FakeTextBlock",
    "make_result",
]
