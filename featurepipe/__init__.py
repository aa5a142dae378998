"""featurepipe: sequential feature pipeline orchestrator on the Claude Agent SDK."""

from .orchestration.orchestrator import PipelineOrchestrator

__version__ = "0.1.0"
__all__ = ["PipelineOrchestrator", "__version__"]
