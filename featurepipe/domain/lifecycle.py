"""Pipeline lifecycle state machine for orchestrator control flow.

Extracts the run's state transitions as a pure, data-in/data-out machine:

    Idle -> Running(i) -> Running(i+1) | Stopped(i, reason) | Completed

Each transition returns an Effect telling the orchestrator which I/O action to
take next. The machine performs no I/O itself, so the ordering and halt rules
can be tested without handlers, agents or the filesystem.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto


class PipelineState(Enum):
    """States of a pipeline run."""

    IDLE = auto()
    RUNNING = auto()
    # Terminal: a stage failed or its stop condition fired
    STOPPED = auto()
    # Terminal: every stage passed
    COMPLETED = auto()


class Effect(Enum):
    """Actions the orchestrator should perform after a transition."""

    RUN_STAGE = auto()
    HALT = auto()
    COMPLETE = auto()


@dataclass(frozen=True)
class TransitionResult:
    """New state, the effect to perform, and the current stage index."""

    state: PipelineState
    effect: Effect
    index: int
    message: str | None = None


class PipelineLifecycle:
    """Pure state machine driving stage-by-stage progression."""

    def __init__(self, stage_count: int) -> None:
        if stage_count < 1:
            raise ValueError("stage_count must be at least 1")
        self.stage_count = stage_count
        self._state = PipelineState.IDLE
        self._index = 0

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def index(self) -> int:
        """0-based index of the current (or halted) stage."""
        return self._index

    @property
    def is_terminal(self) -> bool:
        return self._state in (PipelineState.STOPPED, PipelineState.COMPLETED)

    def start(self) -> TransitionResult:
        """Idle -> Running(0)."""
        if self._state is not PipelineState.IDLE:
            raise ValueError(f"Cannot start from state {self._state}")
        self._state = PipelineState.RUNNING
        self._index = 0
        return TransitionResult(self._state, Effect.RUN_STAGE, self._index)

    def on_stage_passed(self) -> TransitionResult:
        """Running(i) -> Running(i+1), or Completed after the last stage."""
        self._require_running("stage_passed")
        if self._index + 1 >= self.stage_count:
            self._state = PipelineState.COMPLETED
            return TransitionResult(
                self._state, Effect.COMPLETE, self._index, "All stages passed"
            )
        self._index += 1
        return TransitionResult(self._state, Effect.RUN_STAGE, self._index)

    def on_stage_halted(self, reason: str) -> TransitionResult:
        """Running(i) -> Stopped(i, reason)."""
        self._require_running("stage_halted")
        self._state = PipelineState.STOPPED
        return TransitionResult(self._state, Effect.HALT, self._index, reason)

    def on_cancelled(self) -> TransitionResult:
        """Caller-initiated cancellation between stages stops before stage i."""
        return self.on_stage_halted("cancelled by caller before stage started")

    def _require_running(self, event: str) -> None:
        if self._state is not PipelineState.RUNNING:
            raise ValueError(f"Unexpected state for {event}: {self._state}")
