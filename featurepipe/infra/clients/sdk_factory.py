"""Claude Agent SDK client factory.

Isolates the claude_agent_sdk imports behind SDKClientFactoryProtocol so the
handlers can be exercised with fake clients. The SDK is imported lazily, at
option-creation time, so importing featurepipe stays cheap.
"""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pathlib import Path

    from featurepipe.core.protocols import SDKClientProtocol

# Tool set pre-approved for the analytical stages
ANALYSIS_TOOLS = ["Bash", "Glob", "Grep", "Read", "Task"]

# Tools that modify files; analytical stages must not use them
WRITE_TOOLS = ["Edit", "MultiEdit", "NotebookEdit", "Write"]


class SDKClientFactory:
    """Creates ClaudeAgentOptions and ClaudeSDKClient instances.

    Attributes:
        claude_config_dir: Value exported as CLAUDE_CONFIG_DIR to the agent.
    """

    def __init__(self, claude_config_dir: Path | None = None) -> None:
        self.claude_config_dir = claude_config_dir

    def create_options(
        self,
        *,
        cwd: Path,
        model: str,
        permission_mode: str = "bypassPermissions",
        allowed_tools: list[str] | None = None,
        disallowed_tools: list[str] | None = None,
    ) -> object:
        from claude_agent_sdk import ClaudeAgentOptions

        env = dict(os.environ)
        if self.claude_config_dir is not None:
            env["CLAUDE_CONFIG_DIR"] = str(self.claude_config_dir)

        kwargs: dict[str, object] = {
            "cwd": str(cwd),
            "permission_mode": permission_mode,
            "model": model,
            "system_prompt": {"type": "preset", "preset": "claude_code"},
            "setting_sources": ["project", "user"],
            "mcp_servers": {},
            "env": env,
        }
        if allowed_tools is not None:
            kwargs["allowed_tools"] = allowed_tools
        if disallowed_tools is not None:
            kwargs["disallowed_tools"] = disallowed_tools
        return ClaudeAgentOptions(**kwargs)

    def create(self, options: object) -> SDKClientProtocol:
        from claude_agent_sdk import ClaudeSDKClient

        return ClaudeSDKClient(options=options)  # type: ignore[arg-type]
