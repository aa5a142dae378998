"""Unit tests for AgentSdkStageHandler and the shared session helpers."""

from pathlib import Path

import pytest

from featurepipe.core.models import Artifact, ArtifactKind, content_hash
from featurepipe.domain.stages import REFERENCE_STAGES
from featurepipe.infra.clients.agent_sdk_handler import AgentSdkStageHandler
from featurepipe.infra.clients.agent_session import (
    collect_response,
    extract_json,
    parse_json_object,
)
from featurepipe.infra.clients.sdk_factory import ANALYSIS_TOOLS, WRITE_TOOLS
from tests.fakes import (
    FakeAssistantMessage,
    FakeResultMessage,
    FakeSDKClient,
    FakeSDKClientFactory,
    FakeTextBlock,
)

STAGES = {stage.id: stage for stage in REFERENCE_STAGES}

VERDICT = """I checked every reference.

```json
{
  "findings": "billing.export is missing",
  "halt_suggested": false,
  "halt_reason": null,
  "issues": [
    {"description": "billing.export does not exist", "blocking": true, "location": "spec:12"},
    {"description": "consider renaming", "blocking": false},
    "loose string issue",
    {"blocking": true}
  ],
  "body": "# Verification\\n\\n- [ ] billing.export"
}
```
"""


def _spec(tmp_path: Path) -> Artifact:
    return Artifact(
        kind=ArtifactKind.SPECIFICATION,
        feature="FEAT47",
        producing_stage="input",
        path=tmp_path / "FEAT47_specification.md",
        content_hash=content_hash("spec body"),
        body="spec body",
        run_id="r1",
    )


def _handler(stage_id: str, factory: FakeSDKClientFactory, tmp_path: Path) -> AgentSdkStageHandler:
    return AgentSdkStageHandler(
        stage=STAGES[stage_id],
        repo_path=tmp_path,
        sdk_client_factory=factory,
        model="sonnet",
        timeout=5,
    )


class TestExtractJson:
    def test_code_block(self) -> None:
        assert extract_json('text\n```json\n{"a": 1}\n```\nmore') == '{"a": 1}'

    def test_bare_braces(self) -> None:
        assert extract_json('Verdict: {"a": {"b": 2}} done') == '{"a": {"b": 2}}'

    def test_no_json(self) -> None:
        assert extract_json("nothing here") == "nothing here"

    def test_parse_rejects_non_objects(self) -> None:
        with pytest.raises(ValueError, match="Empty response"):
            parse_json_object("   ")
        with pytest.raises(ValueError, match="JSON parse error"):
            parse_json_object("not json")
        with pytest.raises(ValueError, match="not a JSON object"):
            parse_json_object("[1, 2]")


class TestCollectResponse:
    @pytest.mark.asyncio
    async def test_concatenates_assistant_text(self) -> None:
        client = FakeSDKClient(
            messages=[
                FakeAssistantMessage(content=[FakeTextBlock("Hello "), object()]),
                FakeAssistantMessage(content=[FakeTextBlock("world")]),
                FakeResultMessage(result="ignored"),
            ]
        )
        assert await collect_response(client, "prompt", timeout=5) == "Hello world"
        assert client.queries == ["prompt"]
        assert client.entered and client.exited

    @pytest.mark.asyncio
    async def test_falls_back_to_result(self) -> None:
        client = FakeSDKClient(messages=[FakeResultMessage(result=" final ")])
        assert await collect_response(client, "p", timeout=5) == "final"


class TestAgentSdkStageHandler:
    @pytest.mark.asyncio
    async def test_verification_verdict(self, tmp_path: Path) -> None:
        factory = FakeSDKClientFactory.replying(VERDICT)
        handler = _handler("verification", factory, tmp_path)

        output = await handler.handle([_spec(tmp_path)])

        assert output.findings == "billing.export is missing"
        assert output.halt_suggested is False
        assert [i.description for i in output.issues] == [
            "billing.export does not exist",
            "consider renaming",
            "loose string issue",
        ]
        assert output.issues[0].blocking is True
        assert output.issues[0].location == "spec:12"
        assert len(output.outputs) == 1
        assert output.outputs[0].kind is ArtifactKind.VERIFICATION_REPORT
        assert output.outputs[0].body.startswith("# Verification")

    @pytest.mark.asyncio
    async def test_prompt_and_options(self, tmp_path: Path) -> None:
        factory = FakeSDKClientFactory.replying('{"findings": "fine"}')
        handler = _handler("architecture", factory, tmp_path)

        output = await handler.handle([_spec(tmp_path)])

        assert output.outputs == []
        prompt = factory.clients[0].queries[0]
        assert prompt.startswith("# Architecture Analysis")
        assert "spec body" in prompt
        assert "## Output Format" in prompt
        assert factory.options[0]["allowed_tools"] == ANALYSIS_TOOLS
        assert factory.options[0]["model"] == "sonnet"

    @pytest.mark.asyncio
    async def test_file_editing_tools_disallowed(self, tmp_path: Path) -> None:
        factory = FakeSDKClientFactory.replying('{"findings": "ok", "body": "report"}')
        handler = _handler("verification", factory, tmp_path)

        await handler.handle([_spec(tmp_path)])

        disallowed = factory.options[0]["disallowed_tools"]
        assert disallowed == WRITE_TOOLS
        for tool in ("Write", "Edit", "NotebookEdit"):
            assert tool in disallowed
            assert tool not in factory.options[0]["allowed_tools"]

    def test_halt_suggestion(self, tmp_path: Path) -> None:
        handler = _handler("architecture", FakeSDKClientFactory(), tmp_path)
        output = handler.parse_response(
            '{"findings": "cyclic", "halt_suggested": true, "halt_reason": "cycle"}'
        )
        assert output.halt_suggested is True
        assert output.halt_reason == "cycle"

    def test_document_stage_falls_back_to_findings(self, tmp_path: Path) -> None:
        handler = _handler("review", FakeSDKClientFactory(), tmp_path)
        output = handler.parse_response('{"findings": "looks complete"}')
        assert output.outputs[0].body == "looks complete"

    def test_document_stage_requires_content(self, tmp_path: Path) -> None:
        handler = _handler("implementation_guide", FakeSDKClientFactory(), tmp_path)
        with pytest.raises(ValueError, match="empty document"):
            handler.parse_response("{}")

    def test_unparseable_response_raises(self, tmp_path: Path) -> None:
        handler = _handler("architecture", FakeSDKClientFactory(), tmp_path)
        with pytest.raises(ValueError):
            handler.parse_response("I could not decide.")
