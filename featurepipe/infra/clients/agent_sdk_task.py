"""Agent SDK-backed delegated task.

Used for test authoring and the implementation loop. The agent works directly
in the repository with full tool access; its final JSON answer names the files
it touched and becomes the stage's manifest artifact.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from featurepipe.core.models import ArtifactDraft, TaskOutput
from featurepipe.infra.clients.agent_session import collect_response, parse_json_object
from featurepipe.infra.clients.prompts import format_inputs, load_stage_prompt

if TYPE_CHECKING:
    from pathlib import Path

    from featurepipe.core.models import TaskRequest
    from featurepipe.core.protocols import SDKClientFactoryProtocol
    from featurepipe.domain.stages import Stage

logger = logging.getLogger(__name__)

OUTPUT_FORMAT = (
    "\n\n## Output Format\n"
    "When you are done, finish with a single JSON object:\n"
    "```json\n"
    "{\n"
    '  "summary": "What you changed and why",\n'
    '  "files": ["relative/path/one.py", "relative/path/two.py"]\n'
    "}\n"
    "```"
)


@dataclass
class AgentSdkTask:
    """DelegatedTask that runs a full-permission Claude agent session.

    Attributes:
        stage: Stage this task serves; its first output kind receives the
            manifest draft.
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

    async def perform(self, request: TaskRequest) -> TaskOutput:
        options = self.sdk_client_factory.create_options(
            cwd=self.repo_path,
            model=self.model,
            permission_mode="bypassPermissions",
        )
        client = self.sdk_client_factory.create(options)
        logger.debug(
            "Starting %s delegation (iteration %d)", request.stage_id, request.iteration
        )
        response = await collect_response(client, self.build_prompt(request), self.timeout)
        return self.parse_response(response)

    def build_prompt(self, request: TaskRequest) -> str:
        parts = [load_stage_prompt(self.stage.id)]
        parts.append(f"\n\n## Feature\n{request.feature}")
        parts.append(f"\n\n## Input Artifacts\n\n{format_inputs(request.inputs)}")
        if request.test_command:
            parts.append(f"\n\n## Test Command\n`{request.test_command}`")
        if request.iteration > 1:
            parts.append(f"\n\n## Iteration\nThis is attempt {request.iteration}.")
        if request.feedback:
            parts.append(
                "\n\n## Previous Attempt Output\n"
                f"```\n{request.feedback.strip()}\n```"
            )
        parts.append(OUTPUT_FORMAT)
        return "".join(parts)

    def parse_response(self, response_text: str) -> TaskOutput:
        """Build the manifest draft from the agent's answer.

        A response without JSON is kept verbatim as the summary.
        """
        try:
            data = parse_json_object(response_text)
        except ValueError:
            logger.warning("Delegated %s answer had no JSON; keeping raw text", self.stage.id)
            data = {"summary": response_text}

        summary = str(data.get("summary") or "").strip()
        raw_files = data.get("files") or []
        files = tuple(str(f) for f in raw_files if isinstance(f, str) and f.strip())

        lines = [summary or "(no summary provided)"]
        if files:
            lines.append("")
            lines.append("## Files")
            lines.extend(f"- {f}" for f in files)
        draft = ArtifactDraft(
            kind=self.stage.outputs[0], body="\n".join(lines), references=files
        )
        return TaskOutput(artifacts=[draft], summary=summary)
