"""Lifecycle bridge between a running simulation and the statistics engine.

At each lifecycle transition the bridge snapshots the simulation's
population into the engine and runs the configured command template:

    run started      -> run_number += 1, snapshot, run_begin command
    iteration ended  -> (only with an iteration_end command) snapshot, command
    run stopped      -> snapshot, run_end command
    closing (1st)    -> remember the delivery
    closing (2nd+)   -> sim_end command, engine prompt
"""

import logging
from collections import deque

from ..core.errors import SnapshotError
from ..core.models import (
    BridgeCommands,
    CommandRecord,
    LifecycleEvent,
    LifecycleSignal,
    LifecycleState,
)
from ..engine.base import StatsEngine
from .listener import SimulationHost, SimulationListener

logger = logging.getLogger(__name__)

# Replaced with the current iteration number in the iteration end command
ITER_REPLACEMENT_STR = "ITERATION_NBR"

# Most recent executed commands kept in LifecycleBridge.history
HISTORY_LIMIT = 1000


def substitute_iteration(template: str, iteration: int) -> str:
    """Insert the iteration number at every ITERATION_NBR token."""
    return template.replace(ITER_REPLACEMENT_STR, str(int(iteration)))


def snapshot_key(snapshot_name: str, run_number: int) -> str:
    """Engine variable holding the snapshot of one run."""
    return f"{snapshot_name}_run{run_number}"


class LifecycleBridge(SimulationListener):
    """Runs engine commands on simulation lifecycle events."""

    name = "Engine Interface"

    def __init__(
        self,
        engine: StatsEngine,
        host: SimulationHost,
        commands: BridgeCommands | None = None,
        snapshot_name: str = "people",
        history_limit: int | None = HISTORY_LIMIT,
    ):
        """Initialize the bridge.

        Args:
            engine: Statistics engine commands are evaluated in
            host: Simulation providing the iteration number and snapshots
            commands: Command templates, any of which may be absent
            snapshot_name: Engine variable the population is snapshotted to
            history_limit: Number of executed commands kept in ``history``,
                None to keep every command of the session
        """
        self.engine = engine
        self.host = host
        self.commands = commands or BridgeCommands()
        self.snapshot_name = snapshot_name
        self.state = LifecycleState()
        self.history: deque[CommandRecord] = deque(maxlen=history_limit)
        self.commands_executed = 0

    @property
    def run_number(self) -> int:
        return self.state.run_number

    # ── Lifecycle handlers ──

    def run_started(self, signal: LifecycleSignal) -> None:
        run_number = self.state.start_run()

        if run_number == 1:
            self.engine.echo("")

        self.assign_snapshot()

        if self.commands.run_begin is not None:
            self.execute_command(LifecycleEvent.RUN_STARTED, self.commands.run_begin)

    def iteration_ended(self, signal: LifecycleSignal) -> None:
        if self.commands.iteration_end is None:
            return

        self.assign_snapshot()
        self.execute_command(
            LifecycleEvent.ITERATION_ENDED,
            self.commands.iteration_end,
            iteration=self.host.current_iteration,
        )

    def run_stopped(self, signal: LifecycleSignal) -> None:
        self.assign_snapshot()

        if self.commands.run_end is not None:
            self.execute_command(LifecycleEvent.RUN_STOPPED, self.commands.run_end)

    def closing(self, signal: LifecycleSignal) -> None:
        # The host delivers closing twice; only the second delivery acts
        if not self.state.receive_close():
            logger.debug("First closing delivery received")
            return

        if self.commands.sim_end is not None:
            self.execute_command(LifecycleEvent.CLOSING, self.commands.sim_end)

        self.engine.print_prompt()

    # ── Engine operations ──

    def assign_snapshot(self) -> None:
        """Write the current population into the engine for this run.

        Raises:
            SnapshotError: If the host or the engine fails
        """
        run_number = self.state.run_number
        try:
            frame = self.host.snapshot(run_number)
            self.engine.assign_value(self.snapshot_name, frame)
            self.engine.assign_value(
                snapshot_key(self.snapshot_name, run_number), frame
            )
        except Exception as e:
            logger.error("Snapshot of run %d failed: %s", run_number, e)
            raise SnapshotError(run_number, e) from e

    def execute_command(
        self,
        event: LifecycleEvent,
        template: str,
        iteration: int | None = None,
    ) -> None:
        """Substitute, evaluate and echo one command template.

        Engine failures propagate as EngineEvaluationError.
        """
        command = template
        if iteration is not None:
            command = substitute_iteration(template, iteration)

        run_number = self.state.run_number
        self.history.append(
            CommandRecord(
                event=event,
                command=command,
                run_number=run_number,
                iteration=iteration,
            )
        )
        self.commands_executed += 1
        logger.info("[run %d] %s: %s", run_number, event.value, command)
        self.engine.evaluate_logged(command, run_number)
