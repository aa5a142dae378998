"""Claude Agent SDK-backed stage handlers and delegated tasks."""

from .agent_sdk_handler import AgentSdkStageHandler
from .agent_sdk_task import AgentSdkTask
from .sdk_factory import SDKClientFactory

__all__ = [
    "AgentSdkStageHandler",
    "AgentSdkTask",
    "SDKClientFactory",
]
