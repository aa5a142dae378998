"""Console output, event sinks and the per-run debug log."""

from .console_sink import ConsoleEventSink
from .event_sink import NullEventSink

__all__ = [
    "ConsoleEventSink",
    "NullEventSink",
]
