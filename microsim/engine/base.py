"""Interface of the statistics engine consumed by the bridge and weights.

The engine is an environment of named variables that can evaluate
commands, take assignments, build tabular containers from results, and
write to a console side channel.
"""

from typing import Any, Protocol, runtime_checkable

from .tabular import TabularContainer

# Reserved variable that holds the run number while a bridge command runs
RUN_NUMBER_VAR = "run_number"


@runtime_checkable
class StatsEngine(Protocol):
    """Statistics engine protocol.

    Implementations raise EngineEvaluationError from evaluate/assign when
    the engine itself fails, and ResultShapeError from build_tabular when a
    result is not tabular.
    """

    def evaluate(self, expression: str) -> Any: ...

    def evaluate_logged(self, command: str, run_number: int) -> Any:
        """Evaluate ``command``, echo it and its result, and expose ``run_number``."""
        ...

    def assign(self, name: str, value: Any) -> None:
        """Assign ``value`` to ``name``; a string value names another variable."""
        ...

    def assign_value(self, name: str, value: Any) -> None: ...

    def echo(self, text: str) -> None: ...

    def print_prompt(self) -> None: ...

    def build_tabular(self, result: Any, name: str) -> TabularContainer: ...

    def scale(self, container: TabularContainer, factor: float) -> TabularContainer: ...
