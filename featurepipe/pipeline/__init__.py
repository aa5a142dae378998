"""Pipeline execution modules.

Modules:
    agent_gateway: Delegation of bounded sub-tasks with test/check evaluation
    stage_executor: Execution of one stage and recording of its result
"""

from featurepipe.pipeline.agent_gateway import AgentInvocationGateway, BoundedLoop
from featurepipe.pipeline.stage_executor import StageExecutor

__all__ = [
    "AgentInvocationGateway",
    "BoundedLoop",
    "StageExecutor",
]
