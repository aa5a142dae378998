"""Agent SDK-backed analytical stage handler.

Runs one read-only agent session per stage invocation. The agent explores the
repository with Read/Grep/Glob/Bash (file-editing tools are disallowed), then
answers with a JSON verdict that is converted into a HandlerOutput.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from featurepipe.core.models import ArtifactDraft, HandlerOutput, Issue
from featurepipe.infra.clients.agent_session import collect_response, parse_json_object
from featurepipe.infra.clients.prompts import format_inputs, load_stage_prompt
from featurepipe.infra.clients.sdk_factory import ANALYSIS_TOOLS, WRITE_TOOLS

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from featurepipe.core.models import Artifact
    from featurepipe.core.protocols import SDKClientFactoryProtocol
    from featurepipe.domain.stages import Stage

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = (
    "\n\n## Output Format\n"
    "Finish with a single JSON object:\n"
    "```json\n"
    "{\n"
    '  "findings": "Short summary of what you found",\n'
    '  "halt_suggested": false,\n'
    '  "halt_reason": null,\n'
    '  "issues": [\n'
    '    {"description": "...", "blocking": false, "location": "path/to/file.py:10"}\n'
    "  ],\n"
    '  "body": "Full markdown document for the output artifact, if any"\n'
    "}\n"
    "```"
)


@dataclass
class AgentSdkStageHandler:
    """StageHandler that delegates analysis to a Claude agent session.

    Attributes:
        stage: Stage this handler serves; its first output kind (if any)
            receives the ``body`` field of the agent's answer.
        repo_path: Working directory for the agent.
        sdk_client_factory: Factory for creating SDK clients.
        model: Model short name.
        timeout: Session timeout in seconds.
    """

    stage: Stage
    repo_path: Path
    sdk_client_factory: SDKClientFactoryProtocol
    model: str = "opus"
    timeout: float = 1800.0

    async def handle(self, inputs: Sequence[Artifact]) -> HandlerOutput:
        prompt = self._build_prompt(inputs)
        options = self.sdk_client_factory.create_options(
            cwd=self.repo_path,
            model=self.model,
            allowed_tools=ANALYSIS_TOOLS,
            disallowed_tools=WRITE_TOOLS,
        )
        client = self.sdk_client_factory.create(options)
        logger.debug("Starting %s analysis session", self.stage.id)
        response = await collect_response(client, prompt, self.timeout)
        return self.parse_response(response)

    def _build_prompt(self, inputs: Sequence[Artifact]) -> str:
        parts = [load_stage_prompt(self.stage.id)]
        parts.append(f"\n\n## Input Artifacts\n\n{format_inputs(inputs)}")
        parts.append(OUTPUT_FORMAT)
        return "".join(parts)

    def parse_response(self, response_text: str) -> HandlerOutput:
        """Convert the agent's JSON answer into a HandlerOutput.

        Raises:
            ValueError: If the response carries no usable JSON object.
        """
        data = parse_json_object(response_text)

        findings = str(data.get("findings") or "").strip()
        issues = [_parse_issue(item) for item in data.get("issues") or []]
        issues = [issue for issue in issues if issue is not None]
        halt_suggested = bool(data.get("halt_suggested", False))
        halt_reason = data.get("halt_reason") or None

        outputs: list[ArtifactDraft] = []
        if self.stage.outputs:
            body = str(data.get("body") or "").strip() or findings
            if not body:
                raise ValueError(f"Stage '{self.stage.id}' produced an empty document")
            outputs.append(ArtifactDraft(kind=self.stage.outputs[0], body=body))

        return HandlerOutput(
            findings=findings,
            outputs=outputs,
            halt_suggested=halt_suggested,
            halt_reason=str(halt_reason) if halt_reason is not None else None,
            issues=issues,
        )


def _parse_issue(item: Any) -> Issue | None:
    if isinstance(item, str):
        return Issue(description=item)
    if not isinstance(item, dict):
        return None
    description = str(item.get("description") or "").strip()
    if not description:
        return None
    location = item.get("location")
    return Issue(
        description=description,
        blocking=bool(item.get("blocking", False)),
        location=str(location) if location else None,
    )
