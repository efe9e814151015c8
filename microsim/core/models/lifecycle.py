"""Lifecycle models for the simulation/engine bridge.

This module contains:
- Events: LifecycleEvent, LifecycleSignal
- Commands: BridgeCommands (the four immutable command templates)
- State: CloseState, LifecycleState
- History: CommandRecord
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Events
# =============================================================================


class LifecycleEvent(str, Enum):
    """Kind of simulation lifecycle event."""

    RUN_STARTED = "run_started"
    ITERATION_ENDED = "iteration_ended"
    RUN_STOPPED = "run_stopped"
    CLOSING = "closing"


class LifecycleSignal(BaseModel):
    """A lifecycle event delivered by the host simulation."""

    kind: LifecycleEvent = Field(description="Kind of lifecycle event")
    iteration: int = Field(
        default=0, ge=0, description="Host iteration when the event was fired"
    )


# =============================================================================
# Command templates
# =============================================================================


class BridgeCommands(BaseModel):
    """Engine commands run at lifecycle transitions.

    Each template is either a non-empty command string or None. Blank
    strings are treated as absent.
    """

    model_config = ConfigDict(frozen=True)

    iteration_end: str | None = Field(
        default=None,
        description="Run at the end of each iteration; ITERATION_NBR is replaced",
    )
    run_begin: str | None = Field(
        default=None, description="Run at the beginning of each run"
    )
    run_end: str | None = Field(default=None, description="Run at the end of each run")
    sim_end: str | None = Field(
        default=None, description="Run once at the end of the simulation"
    )

    @field_validator("iteration_end", "run_begin", "run_end", "sim_end", mode="before")
    @classmethod
    def _blank_is_absent(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v


# =============================================================================
# State
# =============================================================================


class CloseState(str, Enum):
    """Two-phase shutdown: the host delivers the closing event twice."""

    AWAITING_FIRST_CLOSE = "awaiting_first_close"
    READY_FOR_FINAL = "ready_for_final"


class LifecycleState(BaseModel):
    """Mutable lifecycle state owned by one bridge for one session."""

    run_number: int = Field(default=0, ge=0)
    close_state: CloseState = CloseState.AWAITING_FIRST_CLOSE

    @property
    def first_close_executed(self) -> bool:
        return self.close_state is CloseState.READY_FOR_FINAL

    def start_run(self) -> int:
        """Advance to the next run and return its number."""
        self.run_number += 1
        return self.run_number

    def receive_close(self) -> bool:
        """Record a closing delivery.

        Returns:
            True when this delivery is the final one that should act,
            False for the first delivery.
        """
        if self.close_state is CloseState.AWAITING_FIRST_CLOSE:
            self.close_state = CloseState.READY_FOR_FINAL
            return False
        return True


class CommandRecord(BaseModel):
    """An engine command executed by the bridge."""

    event: LifecycleEvent
    command: str
    run_number: int
    iteration: int | None = None
